"""
Production wiring for the generation orchestrator
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.adapters.llm import BaseLLMAdapter, get_adapter
from tutorgen.config import Settings, get_settings
from tutorgen.utils.database import get_session_factory
from .admin_config import AdminConfigService
from .alerts import BudgetAlerter
from .budget import BudgetLedger
from .content_cache import ContentCache
from .orchestrator import GenerationOrchestrator
from .retrieval import ContextRetriever, DatabaseChunkSearch, seed_pack_index
from .retry import RetryPolicy


def build_orchestrator(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    adapter: Optional[BaseLLMAdapter] = None,
) -> GenerationOrchestrator:
    """
    Assemble the orchestrator and its collaborators.

    Every orchestrator built in one process shares the same seed store,
    so building one per worker task does not re-embed the seed corpus.
    """
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()
    adapter = adapter or get_adapter("openai")

    config_service = AdminConfigService(session_factory, settings)
    retriever = ContextRetriever(
        embedder=adapter,
        index_search=DatabaseChunkSearch(session_factory),
        fallback_index=seed_pack_index(settings.RAG_SEED_DIR, adapter, settings.EMBEDDING_DIM),
        min_score=settings.RAG_MIN_SCORE,
    )
    return GenerationOrchestrator(
        settings=settings,
        adapter=adapter,
        retriever=retriever,
        ledger=BudgetLedger(session_factory, config_service, BudgetAlerter()),
        cache=ContentCache(session_factory),
        policy=RetryPolicy.from_settings(settings),
    )
