"""
Generation error taxonomy

Each error carries its propagation policy:
- budget and circuit-breaker errors abort before any cost is incurred
- model, parse and validation errors are retried within the attempt budget
- retrieval and cache-race errors never reach callers
"""

from typing import Any, Dict, List, Optional


class GenerationError(Exception):
    """Base class for every error the orchestrator can report"""

    status_code: int = 500
    error_code: str = "generation_error"
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "detail": self.message, **self.details}


# ============================================================================
# BUDGET / CIRCUIT BREAKER (not retried)
# ============================================================================

class EndpointDisabled(GenerationError):
    status_code = 503
    error_code = "endpoint_disabled"

    def __init__(self, endpoint: str):
        super().__init__(f"Endpoint {endpoint} disabled", {"endpoint": endpoint})
        self.endpoint = endpoint


class BudgetExceeded(GenerationError):
    status_code = 429
    error_code = "budget_exceeded"

    def __init__(self, message: str, spent_usd: float, cap_usd: float):
        super().__init__(message, {"spent_usd": spent_usd, "cap_usd": cap_usd})
        self.spent_usd = spent_usd
        self.cap_usd = cap_usd


class UserBudgetExceeded(BudgetExceeded):
    error_code = "user_budget_exceeded"


class GlobalBudgetExceeded(BudgetExceeded):
    error_code = "global_budget_exceeded"


# ============================================================================
# INTERNAL ONLY
# ============================================================================

class RetrievalFailure(GenerationError):
    """Absorbed by the retriever's fallback chain"""
    error_code = "retrieval_failure"


class CacheRaceConflict(GenerationError):
    """Resolved by re-reading the canonical row"""
    error_code = "cache_race_conflict"


# ============================================================================
# ATTEMPT FAILURES (retried within the attempt budget)
# ============================================================================

class ModelCallError(GenerationError):
    status_code = 502
    error_code = "model_call_error"
    retryable = True


class ModelTimeoutError(ModelCallError):
    status_code = 504
    error_code = "model_timeout"


class NonRetryableModelError(ModelCallError):
    """Authentication or malformed-request failures; retrying cannot help"""
    error_code = "model_request_rejected"
    retryable = False


class OutputParseError(GenerationError):
    status_code = 502
    error_code = "output_parse_error"
    retryable = True


class SchemaValidationError(GenerationError):
    status_code = 502
    error_code = "schema_validation_error"
    retryable = True

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


# ============================================================================
# TERMINAL
# ============================================================================

class GenerationFailed(GenerationError):
    """All attempts used up, or a non-retryable failure; wraps the last attempt's error"""
    status_code = 502
    error_code = "generation_failed"

    def __init__(self, last_error: GenerationError, attempts: int):
        super().__init__(
            f"Generation failed after {attempts} attempt(s): {last_error.message}",
            {"attempts": attempts, "last_error": last_error.error_code},
        )
        self.last_error = last_error
        self.attempts = attempts
        if isinstance(last_error, ModelTimeoutError):
            self.status_code = ModelTimeoutError.status_code
