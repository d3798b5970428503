"""
Bounded retry policy with exponential backoff and jitter
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tutorgen.config import Settings, get_settings
from tutorgen.adapters.llm.base import (
    LLMAdapterError,
    LLMAuthenticationError,
    LLMInvalidRequestError,
)
from .errors import GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """delay(attempt) = min(base * 2^attempt, max) + uniform(0, jitter)"""
    max_attempts: int = 3
    base_delay_ms: int = 400
    max_delay_ms: int = 8000
    jitter_ms: int = 150

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.GENERATION_MAX_ATTEMPTS,
            base_delay_ms=settings.RETRY_BASE_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            jitter_ms=settings.RETRY_JITTER_MS,
        )

    def delay_seconds(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay before retrying after the given 0-based attempt"""
        backoff = min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)
        jitter = rng() * self.jitter_ms
        return (backoff + jitter) / 1000


def is_retryable(exc: BaseException) -> bool:
    """Authentication and malformed-request failures are final; everything else transient"""
    if isinstance(exc, GenerationError):
        return exc.retryable
    if isinstance(exc, (LLMAuthenticationError, LLMInvalidRequestError)):
        return False
    if isinstance(exc, (LLMAdapterError, asyncio.TimeoutError)):
        return True
    return False


async def with_retries(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run fn until it succeeds or the policy is exhausted.
    Non-retryable errors propagate immediately.
    """
    policy = policy or RetryPolicy.from_settings()
    for attempt in range(policy.max_attempts):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e) or attempt == policy.max_attempts - 1:
                raise
            delay = policy.delay_seconds(attempt)
            logger.info(f"Retry attempt {attempt + 1}/{policy.max_attempts - 1} after {delay:.2f}s: {e}")
            await sleep(delay)
    raise RuntimeError("unreachable")
