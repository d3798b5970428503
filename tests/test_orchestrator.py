import asyncio
import copy
import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import func, select

from tutorgen.adapters.llm import OpenAIAdapter
from tutorgen.adapters.llm.base import LLMAuthenticationError, LLMProviderType, LLMRateLimitError
from tutorgen.models import (
    AICallLog,
    ContentTemplate,
    DailyUserSpend,
    DayUnitLog,
    DayUnitTemplate,
    GenerationKind,
    LearningGoal,
)
from tutorgen.services.errors import (
    EndpointDisabled,
    GenerationFailed,
    ModelCallError,
    ModelTimeoutError,
    NonRetryableModelError,
    OutputParseError,
    SchemaValidationError,
    UserBudgetExceeded,
)
from tutorgen.services.orchestrator import GenerationRequest
from tutorgen.services.retrieval import EMPTY_CONTEXT, InMemoryVectorStore, StoredChunk
from tutorgen.utils.dates import ledger_day

from .conftest import (
    COST_PER_CALL,
    EMBED_DIM,
    VALID_FLASHCARDS,
    VALID_LESSON,
    VALID_PLAN,
    VALID_QUIZ,
    FailingIndexSearch,
    FakeLLMAdapter,
    Hang,
    as_json,
    decimal_eq,
    fake_vector,
)

PLAN_PARAMS = {"topic": "Python", "focus": "loops", "level": "beginner", "minutes_per_day": 15}


def plan_request(user_id="user-1", **params):
    return GenerationRequest(kind=GenerationKind.PLAN, params={**PLAN_PARAMS, **params}, user_id=user_id)


def make_goal(user_id="user-1", plan_template_id=None):
    return LearningGoal(
        id=uuid4(),
        user_id=user_id,
        topic="Python",
        focus="loops",
        level="beginner",
        minutes_per_day=15,
        locale="en",
        timezone="UTC",
        plan_template_id=plan_template_id,
    )


async def count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def call_logs(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(AICallLog).order_by(AICallLog.attempt))).scalars().all()


def prompt_text(adapter, call=0):
    messages, _ = adapter.calls[call]
    return "\n".join(m.content for m in messages)


# ============================================================================
# REQUESTS
# ============================================================================

def test_plan_request_needs_topic():
    with pytest.raises(ValueError):
        GenerationRequest(kind=GenerationKind.PLAN, params={"topic": "   "})


def test_day_unit_request_needs_day_and_owner():
    with pytest.raises(ValueError):
        GenerationRequest(kind=GenerationKind.LESSON, params=PLAN_PARAMS, user_id="u", goal_id=uuid4())
    with pytest.raises(ValueError):
        GenerationRequest(kind=GenerationKind.QUIZ, params=PLAN_PARAMS, day_index=1)
    GenerationRequest(kind="quiz", params=PLAN_PARAMS, day_index=1, template_id=uuid4())


def test_for_goal_uses_template_only_for_day_units():
    template_id = uuid4()
    goal = make_goal(plan_template_id=template_id)

    plan = GenerationRequest.for_goal(goal, GenerationKind.PLAN)
    lesson = GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=2)

    assert plan.template_id is None
    assert lesson.template_id == template_id
    assert lesson.cache_key().day_index == 2
    assert plan.signature == plan_request().signature


# ============================================================================
# HAPPY PATH AND CACHE
# ============================================================================

async def test_cache_miss_generates_stores_and_bills(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    orchestrator = make_orchestrator(adapter)

    outcome = await orchestrator.generate(plan_request())

    assert not outcome.is_error
    assert not outcome.cached
    assert outcome.attempts == 1
    assert outcome.content["topic"] == "Python"
    assert outcome.template_id is not None
    assert decimal_eq(outcome.cost_usd, COST_PER_CALL)
    assert len(adapter.calls) == 1

    _, config = adapter.calls[0]
    assert config.model == "gpt-5-mini"
    assert config.temperature == 0.7

    logs = await call_logs(session_factory)
    assert len(logs) == 1
    assert logs[0].success
    assert logs[0].signature == outcome.signature
    assert logs[0].prompt_tokens == 100
    assert logs[0].total_tokens == 300
    assert decimal_eq(logs[0].cost_usd, COST_PER_CALL)

    async with session_factory() as session:
        rollup = await session.get(DailyUserSpend, ("user-1", ledger_day()))
    assert decimal_eq(rollup.cost_usd, COST_PER_CALL)
    assert rollup.calls == 1


async def test_cache_hit_makes_no_model_call(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    orchestrator = make_orchestrator(adapter)

    first = await orchestrator.generate(plan_request(user_id="user-1"))
    second = await orchestrator.generate(plan_request(user_id="user-2", topic="  PYTHON "))

    assert second.cached
    assert second.content == first.content
    assert second.template_id == first.template_id
    assert second.cost_usd == Decimal("0")
    assert len(adapter.calls) == 1
    assert len(adapter.embed_calls) == 1
    assert await count(session_factory, AICallLog) == 1


async def test_peek_never_calls_the_model(make_orchestrator):
    adapter = FakeLLMAdapter()
    orchestrator = make_orchestrator(adapter)

    assert await orchestrator.peek(plan_request()) is None
    assert adapter.calls == []
    assert adapter.embed_calls == []


async def test_stray_text_around_json_is_accepted_first_try(make_orchestrator, sleeps):
    adapter = FakeLLMAdapter([f"Sure! Here is your plan:\n```json\n{as_json(VALID_PLAN)}\n```\nGood luck!"])
    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert not outcome.is_error
    assert outcome.attempts == 1
    assert sleeps == []


# ============================================================================
# BUDGET GATE
# ============================================================================

async def test_user_over_budget_is_rejected_without_model_call(make_orchestrator, session_factory):
    async with session_factory() as session:
        session.add(DailyUserSpend(user_id="user-1", day=ledger_day(), cost_usd=Decimal("0.25"), calls=3))
        await session.commit()

    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert isinstance(outcome.error, UserBudgetExceeded)
    assert outcome.error.status_code == 429
    assert adapter.calls == []
    assert await count(session_factory, AICallLog) == 0
    with pytest.raises(UserBudgetExceeded):
        outcome.unwrap()


async def test_cached_content_is_served_even_over_budget(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    orchestrator = make_orchestrator(adapter)
    await orchestrator.generate(plan_request())

    async with session_factory() as session:
        session.add(DailyUserSpend(user_id="user-9", day=ledger_day(), cost_usd=Decimal("99"), calls=1))
        await session.commit()

    outcome = await orchestrator.generate(plan_request(user_id="user-9"))
    assert outcome.cached
    assert not outcome.is_error


async def test_disabled_endpoint_is_rejected(make_orchestrator, config_service):
    await config_service.update(disable_endpoints=["plan"])
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])

    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert isinstance(outcome.error, EndpointDisabled)
    assert outcome.error.status_code == 503
    assert adapter.calls == []


# ============================================================================
# RETRIEVAL
# ============================================================================

async def test_retrieval_outage_still_generates_with_empty_context(make_orchestrator):
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    adapter.embed_error = RuntimeError("embeddings unavailable")

    outcome = await make_orchestrator(adapter, index_search=FailingIndexSearch()).generate(plan_request())

    assert not outcome.is_error
    assert outcome.retrieval_source == "none"
    assert EMPTY_CONTEXT in prompt_text(adapter)


async def test_index_outage_uses_fallback_context(make_orchestrator):
    store = InMemoryVectorStore(EMBED_DIM)
    summary = "for loops iterate over any iterable"
    store.upsert(
        StoredChunk(
            id="py-loops", topic="Python", text_summary=summary,
            source={"title": "Control Flow", "url": "https://docs.python.org/3/tutorial/controlflow.html"},
        ),
        fake_vector(summary),
    )
    adapter = FakeLLMAdapter([as_json(VALID_PLAN)])
    search = FailingIndexSearch()

    outcome = await make_orchestrator(adapter, index_search=search, fallback_store=store).generate(plan_request())

    assert search.calls == 1
    assert outcome.retrieval_source == "fallback"
    assert summary in prompt_text(adapter)


# ============================================================================
# RETRIES AND FAILURES
# ============================================================================

async def test_parse_failure_is_retried_and_logged_at_zero_cost(make_orchestrator, session_factory, sleeps):
    adapter = FakeLLMAdapter(["I'm sorry, I can't help with JSON today.", as_json(VALID_PLAN)])

    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert not outcome.is_error
    assert outcome.attempts == 2
    assert sleeps == [pytest.approx(0.475)]

    logs = await call_logs(session_factory)
    assert [log.success for log in logs] == [False, True]
    assert logs[0].cost_usd == 0
    assert logs[0].prompt_tokens == 100
    assert logs[0].error_text.startswith(OutputParseError.error_code)
    assert decimal_eq(logs[1].cost_usd, COST_PER_CALL)


async def test_rate_limited_provider_is_retried(make_orchestrator):
    adapter = FakeLLMAdapter([
        LLMRateLimitError("slow down", LLMProviderType.OPENAI),
        as_json(VALID_PLAN),
    ])
    outcome = await make_orchestrator(adapter).generate(plan_request())
    assert outcome.attempts == 2
    assert not outcome.is_error


async def test_authentication_error_is_not_retried(make_orchestrator, session_factory, sleeps):
    adapter = FakeLLMAdapter([
        LLMAuthenticationError("invalid api key", LLMProviderType.OPENAI),
        as_json(VALID_PLAN),
    ])

    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert isinstance(outcome.error, GenerationFailed)
    assert isinstance(outcome.error.last_error, NonRetryableModelError)
    assert outcome.attempts == 1
    assert len(adapter.calls) == 1
    assert sleeps == []
    assert await count(session_factory, AICallLog) == 1


async def test_invalid_output_exhausts_attempts_and_caches_nothing(make_orchestrator, session_factory, sleeps):
    bad_quiz = copy.deepcopy(VALID_QUIZ)
    bad_quiz["questions"] = bad_quiz["questions"][:4]
    adapter = FakeLLMAdapter(default_response=as_json(bad_quiz))
    goal = make_goal()
    request = GenerationRequest.for_goal(goal, GenerationKind.QUIZ, day_index=1)

    outcome = await make_orchestrator(adapter).generate(request)

    assert isinstance(outcome.error, GenerationFailed)
    assert isinstance(outcome.error.last_error, SchemaValidationError)
    assert outcome.error.status_code == 502
    assert outcome.attempts == 3
    assert len(sleeps) == 2
    assert await count(session_factory, DayUnitLog) == 0
    assert await count(session_factory, DailyUserSpend) == 0

    logs = await call_logs(session_factory)
    assert len(logs) == 3
    assert not any(log.success for log in logs)


async def test_model_timeout(make_orchestrator, settings, session_factory):
    fast = settings.model_copy(update={"TIMEOUT_PLAN_SECONDS": 0.05, "GENERATION_MAX_ATTEMPTS": 2})
    adapter = FakeLLMAdapter([Hang(), Hang()])

    outcome = await make_orchestrator(adapter, app_settings=fast).generate(plan_request())

    assert isinstance(outcome.error, GenerationFailed)
    assert isinstance(outcome.error.last_error, ModelTimeoutError)
    assert outcome.error.status_code == 504
    assert outcome.attempts == 2

    logs = await call_logs(session_factory)
    assert len(logs) == 2
    assert all(log.prompt_tokens == 0 and not log.success for log in logs)


async def test_timeout_then_success(make_orchestrator, settings):
    fast = settings.model_copy(update={"TIMEOUT_PLAN_SECONDS": 0.05})
    adapter = FakeLLMAdapter([Hang(), as_json(VALID_PLAN)])

    outcome = await make_orchestrator(adapter, app_settings=fast).generate(plan_request())

    assert not outcome.is_error
    assert outcome.attempts == 2


# ============================================================================
# DAY UNITS
# ============================================================================

async def test_lessons_are_shared_across_goals_on_one_plan(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([as_json(VALID_PLAN), as_json(VALID_LESSON)])
    orchestrator = make_orchestrator(adapter)
    plan = await orchestrator.generate(plan_request())

    alice = make_goal("alice", plan_template_id=plan.template_id)
    bob = make_goal("bob", plan_template_id=plan.template_id)

    first = await orchestrator.generate(GenerationRequest.for_goal(alice, GenerationKind.LESSON, day_index=1))
    second = await orchestrator.generate(GenerationRequest.for_goal(bob, GenerationKind.LESSON, day_index=1))

    assert not first.cached
    assert second.cached
    assert second.content == first.content
    assert len(adapter.calls) == 2
    assert await count(session_factory, DayUnitTemplate) == 1


async def test_goal_without_plan_uses_per_user_store(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([as_json(VALID_LESSON), as_json(VALID_LESSON)])
    orchestrator = make_orchestrator(adapter)

    goal = make_goal("alice")
    other = make_goal("bob")
    await orchestrator.generate(GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=1))
    again = await orchestrator.generate(GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=1))
    theirs = await orchestrator.generate(GenerationRequest.for_goal(other, GenerationKind.LESSON, day_index=1))

    assert again.cached
    assert not theirs.cached
    assert await count(session_factory, DayUnitLog) == 2


async def test_quiz_and_flashcards_prompts_include_lesson_material(make_orchestrator):
    adapter = FakeLLMAdapter([as_json(VALID_QUIZ), as_json(VALID_FLASHCARDS)])
    orchestrator = make_orchestrator(adapter)
    goal = make_goal()

    quiz = await orchestrator.generate(GenerationRequest.for_goal(
        goal, GenerationKind.QUIZ, day_index=1, source_material="Reading: enumerate pairs items",
    ))
    cards = await orchestrator.generate(GenerationRequest.for_goal(
        goal, GenerationKind.FLASHCARDS, day_index=1, source_material="Reading: enumerate pairs items",
    ))

    assert len(quiz.content["questions"]) == 5
    assert len(cards.content["cards"]) == 4
    assert "enumerate pairs items" in prompt_text(adapter, 0)
    assert "enumerate pairs items" in prompt_text(adapter, 1)
    assert adapter.calls[0][1].temperature == 0.5


# ============================================================================
# CONCURRENCY
# ============================================================================

async def test_concurrent_misses_converge_on_one_cached_row(make_orchestrator, session_factory):
    n = 5
    variants = []
    for i in range(n):
        plan = copy.deepcopy(VALID_PLAN)
        plan["topic"] = f"Python take {i}"
        variants.append(as_json(plan))
    adapter = FakeLLMAdapter(variants)
    adapter.hold_until(n)
    orchestrator = make_orchestrator(adapter)

    outcomes = await asyncio.gather(*(
        orchestrator.generate(plan_request(user_id=f"user-{i}")) for i in range(n)
    ))

    assert all(not o.is_error for o in outcomes)
    assert len(adapter.calls) == n
    assert len({json.dumps(o.content, sort_keys=True) for o in outcomes}) == 1
    assert len({o.template_id for o in outcomes}) == 1
    assert await count(session_factory, ContentTemplate) == 1

    cached = await orchestrator.generate(plan_request(user_id="late-comer"))
    assert cached.cached
    assert cached.content == outcomes[0].content


async def test_gateway_page_is_retried_and_recorded(make_orchestrator, session_factory, sleeps):
    adapter = OpenAIAdapter(
        api_key="sk-test",
        api_base="https://llm.example.org/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>")),
    )

    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert isinstance(outcome.error, GenerationFailed)
    assert isinstance(outcome.error.last_error, ModelCallError)
    assert outcome.attempts == 3
    assert len(sleeps) == 2
    assert await count(session_factory, ContentTemplate) == 0

    logs = await call_logs(session_factory)
    assert [log.attempt for log in logs] == [1, 2, 3]
    assert all(not log.success and log.cost_usd == 0 for log in logs)


async def test_unexpected_adapter_exception_is_recorded(make_orchestrator, session_factory):
    adapter = FakeLLMAdapter([KeyError("choices"), as_json(VALID_PLAN)])

    outcome = await make_orchestrator(adapter).generate(plan_request())

    assert outcome.error is None
    assert outcome.attempts == 2
    logs = await call_logs(session_factory)
    assert [log.success for log in logs] == [False, True]
    assert logs[0].error_text.startswith(ModelCallError.error_code)
