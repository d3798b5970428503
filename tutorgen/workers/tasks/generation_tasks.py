"""
Generation Tasks
Ahead-of-time lesson generation
"""

import asyncio
from typing import Dict, Optional
from uuid import UUID

from celery.utils.log import get_task_logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.models import GenerationKind, LearningGoal
from tutorgen.services.orchestrator import GenerationOrchestrator, GenerationRequest
from tutorgen.workers.celery_app import celery_app

logger = get_task_logger(__name__)


def run_async(coro):
    """Run async function in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _prefetch_lesson(
    goal_id: str,
    user_id: str,
    day_index: int,
    orchestrator: Optional[GenerationOrchestrator] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Dict:
    from tutorgen.services.factory import build_orchestrator
    from tutorgen.utils.database import get_session_factory

    session_factory = session_factory or get_session_factory()
    async with session_factory() as session:
        result = await session.execute(
            select(LearningGoal).where(LearningGoal.id == UUID(goal_id), LearningGoal.user_id == user_id)
        )
        goal = result.scalar_one_or_none()
    if goal is None:
        logger.error(f"Goal not found for prefetch: {goal_id}")
        return {"error": "Goal not found", "goal_id": goal_id}

    orchestrator = orchestrator or build_orchestrator(session_factory=session_factory)
    outcome = await orchestrator.generate(
        GenerationRequest.for_goal(goal, GenerationKind.LESSON, day_index=day_index, user_id=user_id)
    )
    await orchestrator.ledger.alerter.drain()
    if outcome.is_error:
        logger.warning(f"Prefetch failed for goal {goal_id} day {day_index}: {outcome.error.message}")
        return {
            "goal_id": goal_id,
            "day_index": day_index,
            "error": outcome.error.error_code,
        }

    logger.info(f"Prefetched lesson for goal {goal_id} day {day_index} (cached={outcome.cached})")
    return {
        "goal_id": goal_id,
        "day_index": day_index,
        "cached": outcome.cached,
        "cost_usd": float(outcome.cost_usd),
    }


async def _run_prefetch(goal_id: str, user_id: str, day_index: int) -> Dict:
    from tutorgen.utils.database import close_db

    try:
        return await _prefetch_lesson(goal_id, user_id, day_index)
    finally:
        # Pooled connections belong to this task's loop
        await close_db()


@celery_app.task(
    bind=True,
    name="tutorgen.workers.tasks.generation_tasks.prefetch_lesson",
    max_retries=0,
)
def prefetch_lesson(self, goal_id: str, user_id: str, day_index: int) -> Dict:
    """
    Generate a goal's lesson for day_index ahead of time.

    Runs through the same orchestrator as the API, so cache hits are free
    and budget caps apply. Not retried: the orchestrator already retries.
    """
    return run_async(_run_prefetch(goal_id, user_id, day_index))
