"""
Generation Orchestrator

cache lookup -> budget gate -> retrieval -> model call (bounded retries,
per-kind timeout) -> parse -> validate -> cache insert -> ledger write

Every model attempt writes exactly one CallRecord. Failed attempts are
recorded at zero cost and nothing is cached unless validation passed.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Awaitable, Dict, Mapping, Optional, Union
from uuid import UUID

from tutorgen.adapters.llm.base import (
    BaseLLMAdapter,
    LLMAdapterError,
    LLMAuthenticationError,
    LLMConfig,
    LLMInvalidRequestError,
    LLMResponse,
    LLMTimeoutError,
)
from tutorgen.config import Settings
from tutorgen.models.database import DAY_UNIT_KINDS, GenerationKind, LearningGoal
from .budget import BudgetLedger, CallRecord
from .content_cache import CacheKey, CachedContent, ContentCache, DayUnitKey, TemplateKey, UserUnitKey
from .content_validator import validate_content
from .costs import estimate_cost_usd
from .errors import (
    BudgetExceeded,
    CacheRaceConflict,
    EndpointDisabled,
    GenerationError,
    GenerationFailed,
    ModelCallError,
    ModelTimeoutError,
    NonRetryableModelError,
    OutputParseError,
    SchemaValidationError,
)
from .output_parser import parse_model_json
from .prompts import TEMPERATURES, build_messages, retrieval_query
from .retrieval.retriever import SOURCE_NONE, ContextRetriever
from .retry import RetryPolicy
from .signature import SignatureParams, canonicalize

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ============================================================================
# REQUEST / OUTCOME
# ============================================================================

@dataclass
class GenerationRequest:
    """
    What to generate and for whom.

    Plans are addressed by signature alone. Day units (lesson, quiz,
    flashcards) need a day_index plus either the plan template they belong
    to or the (user_id, goal_id) pair for the per-user store.
    """
    kind: GenerationKind
    params: Union[SignatureParams, Mapping[str, Any]]
    user_id: Optional[str] = None
    goal_id: Optional[UUID] = None
    template_id: Optional[UUID] = None
    day_index: Optional[int] = None
    source_material: Optional[str] = None

    def __post_init__(self):
        self.kind = GenerationKind(self.kind)
        if not isinstance(self.params, SignatureParams):
            self.params = SignatureParams.from_mapping(self.params)
        if not self.params.topic or not str(self.params.topic).strip():
            raise ValueError("topic is required")
        if self.kind in DAY_UNIT_KINDS:
            if self.day_index is None or self.day_index < 1:
                raise ValueError(f"{self.kind.value} requests need a day_index >= 1")
            if self.template_id is None and not (self.user_id and self.goal_id):
                raise ValueError(f"{self.kind.value} requests need a template_id or a user_id and goal_id")

    @classmethod
    def for_goal(
        cls,
        goal: LearningGoal,
        kind: GenerationKind,
        day_index: Optional[int] = None,
        source_material: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> "GenerationRequest":
        kind = GenerationKind(kind)
        return cls(
            kind=kind,
            params=SignatureParams(
                topic=goal.topic,
                focus=goal.focus,
                level=goal.level,
                minutes_per_day=goal.minutes_per_day,
                locale=goal.locale,
            ),
            user_id=user_id or goal.user_id,
            goal_id=goal.id,
            template_id=goal.plan_template_id if kind in DAY_UNIT_KINDS else None,
            day_index=day_index,
            source_material=source_material,
        )

    @property
    def signature(self) -> str:
        return canonicalize(self.params)

    def cache_key(self, version: int = 1) -> CacheKey:
        if self.kind not in DAY_UNIT_KINDS:
            return TemplateKey(self.kind, self.signature, version)
        if self.template_id is not None:
            return DayUnitKey(self.template_id, self.kind, self.day_index, version)
        return UserUnitKey(self.user_id, self.goal_id, self.kind, self.day_index)

    def prompt_params(self) -> Dict[str, Any]:
        return {k: v for k, v in self.params.to_dict().items() if v is not None}


@dataclass
class GenerationOutcome:
    """Either content or an error, never both"""
    kind: GenerationKind
    signature: str
    content: Optional[Dict[str, Any]] = None
    cached: bool = False
    template_id: Optional[UUID] = None
    attempts: int = 0
    cost_usd: Decimal = ZERO
    retrieval_source: Optional[str] = None
    error: Optional[GenerationError] = field(default=None)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def unwrap(self) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        return self.content


# ============================================================================
# ORCHESTRATOR
# ============================================================================

def translate_adapter_error(exc: LLMAdapterError) -> ModelCallError:
    if isinstance(exc, (LLMAuthenticationError, LLMInvalidRequestError)):
        return NonRetryableModelError(str(exc), exc.details)
    if isinstance(exc, LLMTimeoutError):
        return ModelTimeoutError(str(exc))
    return ModelCallError(str(exc), exc.details)


class GenerationOrchestrator:
    def __init__(
        self,
        settings: Settings,
        adapter: BaseLLMAdapter,
        retriever: ContextRetriever,
        ledger: BudgetLedger,
        cache: ContentCache,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.settings = settings
        self.adapter = adapter
        self.retriever = retriever
        self.ledger = ledger
        self.cache = cache
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.sleep = sleep
        self.rng = rng

    @property
    def version(self) -> int:
        return self.settings.CONTENT_SCHEMA_VERSION

    async def peek(self, request: GenerationRequest) -> Optional[CachedContent]:
        """Cache lookup only; never calls the model"""
        return await self.cache.lookup(request.cache_key(self.version))

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        kind = request.kind
        signature = request.signature
        key = request.cache_key(self.version)

        cached = await self.cache.lookup(key)
        if cached is not None:
            logger.info(f"Cache hit for {kind.value} {key!r}")
            return GenerationOutcome(
                kind=kind, signature=signature, content=cached.content,
                cached=True, template_id=cached.id,
            )
        logger.info(f"Cache miss for {kind.value} {key!r}")

        try:
            await self.ledger.check_budget_or_fail(request.user_id, kind)
        except (EndpointDisabled, BudgetExceeded) as e:
            return GenerationOutcome(kind=kind, signature=signature, error=e)

        params = request.prompt_params()
        retrieval = await self.retriever.retrieve(
            retrieval_query(kind, params, request.day_index),
            self.settings.retrieval_k(kind),
            topic_filter=request.params.topic,
        )
        messages = build_messages(kind, retrieval.context, params, request.day_index, request.source_material)
        timeout = self.settings.generation_timeout(kind)
        config = LLMConfig(
            model=self.settings.model_for(kind),
            temperature=TEMPERATURES[kind],
            max_tokens=self.settings.LLM_DEFAULT_MAX_TOKENS,
            timeout=timeout,
        )

        last_error: Optional[GenerationError] = None
        attempt = 0
        while attempt < self.policy.max_attempts:
            attempt += 1
            started = time.monotonic()
            response: Optional[LLMResponse] = None
            try:
                response = await asyncio.wait_for(self.adapter.execute_chat(messages, config), timeout=timeout)
                content = validate_content(kind, parse_model_json(response.content))
            except asyncio.TimeoutError:
                last_error = ModelTimeoutError(f"{kind.value} model call exceeded {timeout}s")
            except LLMAdapterError as e:
                last_error = translate_adapter_error(e)
            except (OutputParseError, SchemaValidationError) as e:
                last_error = e
            except Exception as e:
                logger.exception(f"Unexpected error from {self.adapter.provider.value} adapter")
                last_error = ModelCallError(f"Unexpected adapter error: {e!r}"[:500])
            else:
                return await self._store(
                    request, key, signature, content, response, attempt,
                    self._latency(started, response), retrieval.source,
                )

            await self.ledger.record_call(self._record(
                request, signature, config.model, attempt, response,
                success=False, cost=ZERO, latency_ms=self._latency(started, response),
                error_text=f"{last_error.error_code}: {last_error.message}"[:2000],
            ))
            logger.warning(
                f"{kind.value} attempt {attempt}/{self.policy.max_attempts} failed: "
                f"{last_error.error_code}: {last_error.message}"
            )
            if not last_error.retryable:
                break
            if attempt < self.policy.max_attempts:
                await self.sleep(self.policy.delay_seconds(attempt - 1, self.rng))

        failure = GenerationFailed(last_error, attempt)
        logger.error(f"{kind.value} generation failed for signature {signature[:12]}: {failure.message}")
        return GenerationOutcome(
            kind=kind, signature=signature, attempts=attempt,
            retrieval_source=retrieval.source or SOURCE_NONE, error=failure,
        )

    async def _store(
        self,
        request: GenerationRequest,
        key: CacheKey,
        signature: str,
        content: Dict[str, Any],
        response: LLMResponse,
        attempt: int,
        latency_ms: int,
        retrieval_source: str,
    ) -> GenerationOutcome:
        usage = response.usage
        cost = response.estimated_cost_usd
        if cost is None:
            cost = estimate_cost_usd(
                response.model,
                usage.prompt_tokens if usage else 0,
                usage.completion_tokens if usage else 0,
            )

        stored: Optional[CachedContent] = None
        try:
            stored = await self.cache.insert(key, content, model=response.model, created_by=request.user_id)
        except CacheRaceConflict as e:
            logger.error(f"Could not resolve canonical row, returning uncached content: {e.message}")
        finally:
            await self.ledger.record_call(self._record(
                request, signature, response.model, attempt, response,
                success=True, cost=cost, latency_ms=latency_ms,
            ))

        return GenerationOutcome(
            kind=request.kind,
            signature=signature,
            content=stored.content if stored is not None else content,
            cached=False,
            template_id=stored.id if stored is not None else None,
            attempts=attempt,
            cost_usd=cost,
            retrieval_source=retrieval_source,
        )

    @staticmethod
    def _latency(started: float, response: Optional[LLMResponse]) -> int:
        if response is not None and response.latency_ms is not None:
            return response.latency_ms
        return int((time.monotonic() - started) * 1000)

    @staticmethod
    def _record(
        request: GenerationRequest,
        signature: str,
        model: str,
        attempt: int,
        response: Optional[LLMResponse],
        success: bool,
        cost: Decimal,
        latency_ms: int,
        error_text: Optional[str] = None,
    ) -> CallRecord:
        usage = response.usage if response is not None else None
        return CallRecord(
            endpoint=request.kind,
            model=model,
            success=success,
            user_id=request.user_id,
            goal_id=request.goal_id,
            signature=signature,
            attempt=attempt,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            cost_usd=cost,
            latency_ms=latency_ms,
            error_text=error_text,
        )
