"""
Shared route dependencies
"""

from fastapi import Request

from tutorgen.services.admin_config import AdminConfigService
from tutorgen.services.orchestrator import GenerationOrchestrator
from tutorgen.utils.cache import RateLimitCache, rate_limit


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Orchestrator built once at startup (see tutorgen.main lifespan)"""
    return request.app.state.orchestrator


def get_admin_config_service(request: Request) -> AdminConfigService:
    return request.app.state.orchestrator.ledger.config_service


def get_rate_limiter() -> RateLimitCache:
    return rate_limit
