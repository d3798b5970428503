"""
Shared fixtures: a file-backed SQLite database per test, fake LLM adapter
and embedder, and an orchestrator wired to both.
"""

import asyncio
import hashlib
import json
from decimal import Decimal
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tutorgen.adapters.llm.base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMProviderType,
    LLMResponse,
    LLMUsage,
)
from tutorgen.config import Settings
from tutorgen.services.admin_config import AdminConfigService
from tutorgen.services.budget import BudgetLedger
from tutorgen.services.content_cache import ContentCache
from tutorgen.services.costs import estimate_cost_usd
from tutorgen.services.orchestrator import GenerationOrchestrator
from tutorgen.services.retrieval import ContextRetriever, FallbackIndex, InMemoryVectorStore
from tutorgen.services.retry import RetryPolicy
from tutorgen.utils.database import init_db

EMBED_DIM = 16
PROMPT_TOKENS = 100
COMPLETION_TOKENS = 200


# ============================================================================
# CONTENT SAMPLES
# ============================================================================

VALID_PLAN = {
    "version": "1",
    "topic": "Python",
    "total_days": 2,
    "modules": [
        {
            "title": "Loops",
            "days": [
                {
                    "day_index": 1,
                    "topic": "for loops",
                    "objective": "Iterate over lists",
                    "practice": "Sum a list",
                    "assessment": "Explain range()",
                    "est_minutes": 15,
                },
                {
                    "day_index": 2,
                    "topic": "while loops",
                    "objective": "Loop until a condition",
                    "practice": "Count down",
                    "assessment": "Explain break",
                    "est_minutes": 15,
                },
            ],
        }
    ],
    "citations": ["https://docs.python.org/3/tutorial/controlflow.html"],
}

VALID_LESSON = {
    "topic": "for loops",
    "reading": "A for loop walks over any iterable.",
    "walkthrough": "for n in range(3): print(n) prints 0, 1 and 2.",
    "quiz": [
        {"q": "What does range(3) yield?", "a": ["0,1,2", "1,2,3"], "correct_index": 0},
        {"q": "Which keyword exits a loop?", "a": ["stop", "break", "exit"], "correct_index": 1},
    ],
    "exercise": "Print the squares of 1 to 5.",
    "citations": ["https://docs.python.org/3/tutorial/controlflow.html"],
    "est_minutes": 10,
}


def _mc(i: int) -> dict:
    return {
        "question": f"Question {i}?",
        "type": "multiple_choice",
        "options": ["A", "B", "C", "D"],
        "correct_answer_index": i % 4,
        "difficulty": "easy",
        "points": 1,
        "explanation": "Because.",
    }


VALID_QUIZ = {
    "title": "Quiz: for loops",
    "description": "Test your knowledge of for loops",
    "time_limit_minutes": 10,
    "questions": [
        _mc(1),
        _mc(2),
        _mc(3),
        {
            "question": "range(3) includes 3.",
            "type": "true_false",
            "correct_answer_text": "false",
            "difficulty": "medium",
            "points": 1,
            "explanation": "The stop value is excluded.",
        },
        {
            "question": "The keyword ____ skips to the next iteration.",
            "type": "fill_blank",
            "correct_answer_text": "continue",
            "difficulty": "easy",
            "points": 1,
            "explanation": "continue skips the rest of the body.",
        },
    ],
}

VALID_FLASHCARDS = {
    "cards": [
        {"front": "range()", "back": "Produces an integer sequence", "difficulty": "easy"},
        {"front": "break", "back": "Exits the loop", "difficulty": "easy"},
        {"front": "continue", "back": "Skips to the next iteration", "difficulty": "medium"},
        {"front": "enumerate()", "back": "Pairs items with indices", "difficulty": "medium"},
    ]
}


def as_json(payload: dict) -> str:
    return json.dumps(payload)


# ============================================================================
# FAKES
# ============================================================================

def fake_vector(text: str, dim: int = EMBED_DIM) -> List[float]:
    """Deterministic bag-of-words embedding"""
    vector = [0.0] * dim
    for token in text.lower().split():
        bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dim
        vector[bucket] += 1.0
    return vector


class Hang:
    """Scripted response that never completes"""


class FakeLLMAdapter(BaseLLMAdapter):
    """
    Scripted adapter. Each chat call pops the next scripted item: a string
    is returned as content, an exception is raised, Hang blocks forever.
    When the script is empty, default_response is used.
    """

    def __init__(self, responses=None, default_response: Optional[str] = None, dim: int = EMBED_DIM):
        super().__init__(api_key="test-key")
        self.responses = list(responses or [])
        self.default_response = default_response
        self.dim = dim
        self.calls: List[tuple] = []
        self.embed_calls: List[List[str]] = []
        self.embed_error: Optional[Exception] = None
        self.release_after: Optional[int] = None
        self._gate = asyncio.Event()

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.OPENAI

    @property
    def default_model(self) -> str:
        return "gpt-5-mini"

    def hold_until(self, n_calls: int) -> None:
        """Block chat calls until n_calls have arrived"""
        self.release_after = n_calls
        self._gate.clear()

    async def execute_chat(self, messages: List[LLMMessage], config: Optional[LLMConfig] = None) -> LLMResponse:
        self.calls.append((messages, config))
        item = self.responses.pop(0) if self.responses else self.default_response

        if self.release_after is not None:
            if len(self.calls) >= self.release_after:
                self._gate.set()
            await self._gate.wait()

        if isinstance(item, Hang):
            await asyncio.sleep(3600)
        if isinstance(item, BaseException):
            raise item
        if item is None:
            raise AssertionError("FakeLLMAdapter ran out of scripted responses")

        model = config.model if config else self.default_model
        return LLMResponse(
            content=item,
            raw_response={},
            provider=self.provider,
            model=model,
            finish_reason="stop",
            usage=LLMUsage(PROMPT_TOKENS, COMPLETION_TOKENS, PROMPT_TOKENS + COMPLETION_TOKENS),
            estimated_cost_usd=estimate_cost_usd(model, PROMPT_TOKENS, COMPLETION_TOKENS),
            latency_ms=5,
        )

    async def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        self.embed_calls.append(list(texts))
        if self.embed_error is not None:
            raise self.embed_error
        return [fake_vector(t, self.dim) for t in texts]

    def estimate_tokens(self, text: str) -> int:
        return len(text.split())


class FailingIndexSearch:
    """Indexed search whose backend is always down"""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or ConnectionError("corpus database unreachable")
        self.calls = 0

    async def search(self, query_vector, k, topic_filter=None):
        self.calls += 1
        raise self.error


COST_PER_CALL = estimate_cost_usd("gpt-5-mini", PROMPT_TOKENS, COMPLETION_TOKENS)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "tutorgen-test.db"


@pytest.fixture
def settings(tmp_path, db_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{db_path}",
        OPENAI_API_KEY="test-key",
        RETRY_BASE_DELAY_MS=400,
        RETRY_MAX_DELAY_MS=8000,
        RETRY_JITTER_MS=150,
        GENERATION_MAX_ATTEMPTS=3,
        DAILY_USER_BUDGET_USD=0.25,
        DAILY_GLOBAL_BUDGET_USD=10.0,
        DISABLE_ENDPOINTS="",
        ADMIN_CONFIG_TTL_SECONDS=0,
        ADMIN_API_TOKEN="admin-secret",
        RAG_SEED_DIR=str(tmp_path / "packs"),
        RAG_MIN_SCORE=0.0,
        CONTENT_SCHEMA_VERSION=1,
    )


@pytest.fixture
async def engine(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def adapter():
    return FakeLLMAdapter()


@pytest.fixture
def config_service(session_factory, settings):
    return AdminConfigService(session_factory, settings)


@pytest.fixture
def ledger(session_factory, config_service):
    return BudgetLedger(session_factory, config_service)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(settings, session_factory, ledger, sleeps):
    """Build an orchestrator around an adapter; retries sleep instantly"""

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def _make(adapter, index_search=None, fallback_store: Optional[InMemoryVectorStore] = None, app_settings=None):
        store = fallback_store if fallback_store is not None else InMemoryVectorStore(EMBED_DIM)

        async def load_store():
            return store

        retriever = ContextRetriever(
            embedder=adapter,
            index_search=index_search,
            fallback_index=FallbackIndex(load_store),
            min_score=0.0,
        )
        active = app_settings or settings
        return GenerationOrchestrator(
            settings=active,
            adapter=adapter,
            retriever=retriever,
            ledger=ledger,
            cache=ContentCache(session_factory),
            policy=RetryPolicy.from_settings(active),
            sleep=fake_sleep,
            rng=lambda: 0.5,
        )

    return _make


def decimal_eq(value, expected) -> bool:
    return Decimal(str(value)) == Decimal(str(expected))
