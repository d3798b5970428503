"""
Goal Routes
Plans and per-day units (lesson, quiz, flashcards) for a learner's goal
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, status
from kombu.exceptions import OperationalError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorgen.api.deps import get_orchestrator, get_rate_limiter
from tutorgen.api.middleware.identity import get_current_user_id
from tutorgen.api.routes.generation import outcome_to_response
from tutorgen.config import get_settings
from tutorgen.models import ContentTemplate, GenerationKind, LearningGoal
from tutorgen.schemas.generation import DayUnitRequest, GenerationResponse
from tutorgen.services.orchestrator import GenerationOrchestrator, GenerationRequest
from tutorgen.services.prompts import lesson_material, plan_day_outline
from tutorgen.utils import get_db
from tutorgen.utils.cache import RateLimitCache
from tutorgen.utils.dates import day_index as compute_day_index

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_goal(db: AsyncSession, goal_id: UUID, user_id: str) -> LearningGoal:
    result = await db.execute(
        select(LearningGoal).where(LearningGoal.id == goal_id, LearningGoal.user_id == user_id)
    )
    goal = result.scalar_one_or_none()
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return goal


async def _plan_outline(db: AsyncSession, goal: LearningGoal, day: int) -> Optional[str]:
    if goal.plan_template_id is None:
        return None
    template = await db.get(ContentTemplate, goal.plan_template_id)
    return plan_day_outline(template.content if template else None, day)


async def _lesson_source(
    orchestrator: GenerationOrchestrator, goal: LearningGoal, user_id: str, day: int
) -> Optional[str]:
    cached = await orchestrator.peek(
        GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=day, user_id=user_id)
    )
    return lesson_material(cached.content if cached else None)


def _enqueue_prefetch(goal: LearningGoal, user_id: str, day: int) -> None:
    from tutorgen.workers.tasks.generation_tasks import prefetch_lesson

    try:
        prefetch_lesson.delay(str(goal.id), user_id, day)
    except OperationalError as e:
        logger.warning(f"Could not enqueue lesson prefetch for goal {goal.id} day {day}: {e}")


@router.get("/{goal_id}/plan", response_model=GenerationResponse)
async def get_goal_plan(
    goal_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Generate or reuse the goal's plan and link the goal to it"""
    goal = await get_goal(db, goal_id, user_id)
    outcome = await orchestrator.generate(
        GenerationRequest.for_goal(goal, GenerationKind.PLAN, user_id=user_id)
    )
    response = outcome_to_response(outcome)

    if outcome.template_id is not None and goal.plan_template_id != outcome.template_id:
        goal.plan_template_id = outcome.template_id
        await db.flush()
    return response


@router.get("/{goal_id}/today", response_model=GenerationResponse)
async def get_today_lesson(
    goal_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    limiter: RateLimitCache = Depends(get_rate_limiter),
):
    """
    Today's lesson for the goal.

    Shared across goals on the same plan template; per-user otherwise.
    Generation (not cache hits) is limited to one per window per goal.
    """
    settings = get_settings()
    goal = await get_goal(db, goal_id, user_id)
    today = compute_day_index(goal.created_at, tz=goal.timezone)
    request = GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=today, user_id=user_id)

    if await orchestrator.peek(request) is None:
        identifier = f"lesson:{user_id}:{goal.id}"
        allowed, _ = await limiter.check_rate_limit(
            identifier, 1, settings.LESSON_RATE_LIMIT_WINDOW_SECONDS
        )
        if not allowed:
            retry_after = await limiter.get_retry_after(identifier)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Lesson generation already requested, retry shortly",
                headers={"Retry-After": str(retry_after or settings.LESSON_RATE_LIMIT_WINDOW_SECONDS)},
            )
        request.source_material = await _plan_outline(db, goal, today)

    outcome = await orchestrator.generate(request)
    response = outcome_to_response(outcome, day_index=today)

    if settings.PREFETCH_NEXT_LESSON:
        _enqueue_prefetch(goal, user_id, today + 1)
    return response


async def _day_unit(
    kind: GenerationKind,
    goal_id: UUID,
    body: Optional[DayUnitRequest],
    db: AsyncSession,
    user_id: str,
    orchestrator: GenerationOrchestrator,
) -> GenerationResponse:
    goal = await get_goal(db, goal_id, user_id)
    day = (body.day_index if body else None) or compute_day_index(goal.created_at, tz=goal.timezone)
    request = GenerationRequest.for_goal(goal, kind, day_index=day, user_id=user_id)
    if await orchestrator.peek(request) is None:
        request.source_material = await _lesson_source(orchestrator, goal, user_id, day)
    outcome = await orchestrator.generate(request)
    return outcome_to_response(outcome, day_index=day)


@router.post("/{goal_id}/quiz", response_model=GenerationResponse)
async def generate_quiz(
    goal_id: UUID,
    body: Optional[DayUnitRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Quiz for a day of the goal (today by default), built on that day's lesson"""
    return await _day_unit(GenerationKind.QUIZ, goal_id, body, db, user_id, orchestrator)


@router.post("/{goal_id}/flashcards", response_model=GenerationResponse)
async def generate_flashcards(
    goal_id: UUID,
    body: Optional[DayUnitRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Flashcards for a day of the goal (today by default), built on that day's lesson"""
    return await _day_unit(GenerationKind.FLASHCARDS, goal_id, body, db, user_id, orchestrator)
