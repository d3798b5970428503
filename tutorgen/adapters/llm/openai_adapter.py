"""
OpenAI Adapter
Chat completions for generation, embeddings for retrieval
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import tiktoken

from tutorgen.config import get_settings
from tutorgen.services.costs import estimate_cost_usd
from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMUsage,
    LLMProviderType,
    LLMAdapterError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMTimeoutError,
    LLMInvalidRequestError,
    LLMServerError,
)

logger = logging.getLogger(__name__)


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for the OpenAI REST API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[LLMConfig] = None,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        super().__init__(api_key or settings.OPENAI_API_KEY, config)
        self.api_base = (api_base or settings.OPENAI_API_BASE).rstrip("/")
        self.embed_model = settings.OPENAI_EMBED_MODEL
        self.embed_timeout = settings.LLM_EMBED_TIMEOUT
        self._default_model = settings.OPENAI_MODEL_LESSON
        self._transport = transport
        self._tokenizer = None

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.OPENAI

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_tokenizer(self):
        """Get tiktoken encoder for token counting"""
        if self._tokenizer is None:
            try:
                self._tokenizer = tiktoken.encoding_for_model("gpt-4o")
            except KeyError:
                self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    def estimate_tokens(self, text: str) -> int:
        """Estimate tokens using tiktoken"""
        encoder = self._get_tokenizer()
        return len(encoder.encode(text))

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status == 200:
            return
        details = {"status_code": status, "response": response.text[:2000]}
        if status in (401, 403):
            raise LLMAuthenticationError("Invalid API key", self.provider, details)
        if status == 429:
            raise LLMRateLimitError("Rate limit exceeded", self.provider, details)
        if status in (400, 404, 422):
            raise LLMInvalidRequestError(f"Invalid request: {response.text[:500]}", self.provider, details)
        if status >= 500:
            raise LLMServerError(f"Server error {status}", self.provider, details)
        raise LLMAdapterError(f"API error: {response.text[:500]}", self.provider, details)

    async def _post(self, path: str, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_base}{path}",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException:
            raise LLMTimeoutError(f"Request timed out after {timeout}s", self.provider)
        except httpx.RequestError as e:
            raise LLMAdapterError(f"Request failed: {str(e)}", self.provider)

        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError:
            raise LLMServerError(
                "Malformed response body",
                self.provider,
                {"status_code": response.status_code, "response": response.text[:2000]},
            )

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        cfg = config or self.config or LLMConfig(model=self.default_model)
        request_time = datetime.now(timezone.utc)

        payload: Dict[str, Any] = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": cfg.max_tokens,
        }
        if cfg.temperature is not None:
            payload["temperature"] = cfg.temperature
        payload.update(cfg.extra_params)

        if cfg.json_mode:
            try:
                data = await self._post(
                    "/chat/completions",
                    {**payload, "response_format": {"type": "json_object"}},
                    cfg.timeout,
                )
            except LLMInvalidRequestError as e:
                # Some models reject response_format; retry once as plain text
                if "response_format" not in e.details.get("response", ""):
                    raise
                logger.info(f"Model {cfg.model} rejected json mode, retrying without it")
                data = await self._post("/chat/completions", payload, cfg.timeout)
        else:
            data = await self._post("/chat/completions", payload, cfg.timeout)

        response_time = datetime.now(timezone.utc)

        try:
            choice = data["choices"][0]
            content = choice["message"].get("content") or ""
        except (KeyError, IndexError, TypeError):
            raise LLMServerError("Malformed completion payload", self.provider, {"response": data})

        usage_data = data.get("usage") or {}
        if usage_data:
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0),
            )
        else:
            prompt_tokens = sum(self.estimate_tokens(m.content) for m in messages)
            completion_tokens = self.estimate_tokens(content)
            usage = LLMUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)

        return LLMResponse(
            content=content,
            raw_response=data,
            provider=self.provider,
            model=cfg.model,
            finish_reason=choice.get("finish_reason"),
            usage=usage,
            estimated_cost_usd=estimate_cost_usd(cfg.model, usage.prompt_tokens, usage.completion_tokens),
            request_time=request_time,
            response_time=response_time,
            latency_ms=self._calculate_latency(request_time, response_time),
        )

    async def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """Embed texts with the embeddings endpoint"""
        if not texts:
            return []
        data = await self._post(
            "/embeddings",
            {"model": model or self.embed_model, "input": texts},
            self.embed_timeout,
        )
        items = sorted(data.get("data", []), key=lambda d: d.get("index", 0))
        if len(items) != len(texts):
            raise LLMServerError(
                f"Expected {len(texts)} embeddings, got {len(items)}",
                self.provider,
            )
        return [item["embedding"] for item in items]
