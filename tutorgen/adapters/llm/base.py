"""
Base LLM Adapter Interface
All LLM providers must implement this interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class LLMProviderType(str, Enum):
    """Supported LLM providers"""
    OPENAI = "openai"


@dataclass
class LLMConfig:
    """Configuration for LLM request"""
    model: str
    temperature: Optional[float] = 0.7
    max_tokens: int = 4000
    timeout: float = 60  # seconds
    json_mode: bool = True
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMMessage:
    """A message in the conversation"""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMUsage:
    """Token usage information"""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class LLMResponse:
    """Standardized LLM response across all providers"""
    # Core response
    content: str
    raw_response: Dict[str, Any]

    # Metadata
    provider: LLMProviderType
    model: str
    finish_reason: Optional[str] = None

    # Usage & Cost
    usage: Optional[LLMUsage] = None
    estimated_cost_usd: Optional[Decimal] = None

    # Timing
    request_time: Optional[datetime] = None
    response_time: Optional[datetime] = None
    latency_ms: Optional[int] = None


class BaseLLMAdapter(ABC):
    """
    Abstract base class for LLM adapters.
    The orchestrator needs chat completion plus embeddings for retrieval.
    """

    def __init__(self, api_key: Optional[str], config: Optional[LLMConfig] = None):
        self.api_key = api_key
        self.config = config

    @property
    @abstractmethod
    def provider(self) -> LLMProviderType:
        """Return the provider type"""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider"""

    @abstractmethod
    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """
        Execute a multi-turn chat conversation.

        Args:
            messages: List of messages in the conversation
            config: Optional configuration override

        Returns:
            LLMResponse with standardized response data

        Raises:
            LLMAdapterError (or a subclass) on any provider failure
        """

    @abstractmethod
    async def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """
        Embed a batch of texts, returning one vector per input in order.
        """

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """
        Estimate the number of tokens in a text.
        """

    def _calculate_latency(self, start: datetime, end: datetime) -> int:
        """Calculate latency in milliseconds"""
        return int((end - start).total_seconds() * 1000)


class LLMAdapterError(Exception):
    """Base exception for LLM adapter errors (transport and unclassified failures)"""
    def __init__(self, message: str, provider: LLMProviderType, details: Optional[Dict] = None):
        super().__init__(message)
        self.provider = provider
        self.details = details or {}


class LLMRateLimitError(LLMAdapterError):
    """Rate limit exceeded"""
    pass


class LLMAuthenticationError(LLMAdapterError):
    """Authentication failed"""
    pass


class LLMTimeoutError(LLMAdapterError):
    """Request timed out"""
    pass


class LLMInvalidRequestError(LLMAdapterError):
    """Invalid request parameters"""
    pass


class LLMServerError(LLMAdapterError):
    """Provider returned a 5xx"""
    pass
