"""
Budget Ledger
Pre-call budget gate, per-attempt audit log and daily spend rollups
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.models.database import AICallLog, DailyGlobalSpend, DailyUserSpend, GenerationKind
from tutorgen.utils.dates import ledger_day, utcnow
from .admin_config import AdminConfigService
from .alerts import BudgetAlerter
from .errors import EndpointDisabled, GlobalBudgetExceeded, UserBudgetExceeded

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class CallRecord:
    """One model attempt, successful or not"""
    endpoint: GenerationKind
    model: str
    success: bool
    user_id: Optional[str] = None
    goal_id: Optional[UUID] = None
    signature: Optional[str] = None
    attempt: int = 1
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost_usd: Decimal = ZERO
    latency_ms: int = 0
    error_text: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def billable(self) -> bool:
        return self.success and self.cost_usd > ZERO


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Atomic spend increments not supported on {dialect}")


class BudgetLedger:
    """
    Budget gate and spend ledger.

    The gate reads rollups that are only incremented after a call completes,
    so concurrent bursts can overshoot a cap before the rollup catches up.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config_service: AdminConfigService,
        alerter: Optional[BudgetAlerter] = None,
    ):
        self.session_factory = session_factory
        self.config_service = config_service
        self.alerter = alerter or BudgetAlerter()

    # =========================================================================
    # BUDGET GATE
    # =========================================================================

    async def check_budget_or_fail(self, user_id: Optional[str], kind: GenerationKind) -> None:
        """
        Raise if a billable call of this kind must not be issued.
        Checks, in order: circuit breaker, per-user cap, global cap.
        """
        config = await self.config_service.load()
        endpoint = GenerationKind(kind).value

        if endpoint in config.disabled_endpoints:
            logger.warning(f"Rejected {endpoint} call: endpoint disabled")
            raise EndpointDisabled(endpoint)

        day = ledger_day()

        if user_id is not None:
            user_spend = await self.get_user_spend(user_id, day)
            if user_spend >= config.daily_user_budget_usd:
                logger.warning(
                    f"Rejected {endpoint} call for user {user_id}: "
                    f"spent ${user_spend} of ${config.daily_user_budget_usd}"
                )
                self.alerter.schedule(
                    config.alert_webhook, f"user:{user_id}", day,
                    f"User {user_id} reached daily budget ${config.daily_user_budget_usd}",
                )
                raise UserBudgetExceeded(
                    "Daily user budget reached", float(user_spend), float(config.daily_user_budget_usd)
                )

        global_spend = await self.get_global_spend(day)
        if global_spend >= config.daily_global_budget_usd:
            logger.warning(
                f"Rejected {endpoint} call: global spend ${global_spend} "
                f"of ${config.daily_global_budget_usd}"
            )
            self.alerter.schedule(
                config.alert_webhook, "global", day,
                f"Global daily budget ${config.daily_global_budget_usd} reached",
            )
            raise GlobalBudgetExceeded(
                "Global daily budget reached", float(global_spend), float(config.daily_global_budget_usd)
            )

    async def get_user_spend(self, user_id: str, day: Optional[date] = None) -> Decimal:
        day = day or ledger_day()
        async with self.session_factory() as session:
            result = await session.execute(
                select(DailyUserSpend.cost_usd).where(
                    DailyUserSpend.user_id == user_id,
                    DailyUserSpend.day == day,
                )
            )
            value = result.scalar_one_or_none()
        return Decimal(str(value)) if value is not None else ZERO

    async def get_global_spend(self, day: Optional[date] = None) -> Decimal:
        day = day or ledger_day()
        async with self.session_factory() as session:
            result = await session.execute(
                select(DailyGlobalSpend.cost_usd).where(DailyGlobalSpend.day == day)
            )
            value = result.scalar_one_or_none()
        return Decimal(str(value)) if value is not None else ZERO

    # =========================================================================
    # LEDGER WRITES
    # =========================================================================

    async def record_call(self, record: CallRecord) -> None:
        """
        Append one audit row. Billable successes also increment the user and
        global rollups in the same transaction.
        """
        day = ledger_day()
        async with self.session_factory() as session:
            session.add(AICallLog(
                user_id=record.user_id,
                goal_id=record.goal_id,
                endpoint=GenerationKind(record.endpoint),
                model=record.model,
                signature=record.signature,
                attempt=record.attempt,
                prompt_tokens=record.prompt_tokens,
                completion_tokens=record.completion_tokens,
                total_tokens=record.total_tokens,
                cost_usd=record.cost_usd,
                latency_ms=record.latency_ms,
                success=record.success,
                error_text=record.error_text,
            ))

            if record.billable:
                if record.user_id is not None:
                    await self._increment_user(session, record.user_id, day, record.cost_usd)
                await self._increment_global(session, day, record.cost_usd)

            await session.commit()

    async def _increment_user(self, session: AsyncSession, user_id: str, day: date, cost: Decimal) -> Decimal:
        insert = _insert_for(session)
        stmt = insert(DailyUserSpend).values(
            user_id=user_id, day=day, cost_usd=cost, calls=1, updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyUserSpend.user_id, DailyUserSpend.day],
            set_={
                "cost_usd": DailyUserSpend.cost_usd + stmt.excluded.cost_usd,
                "calls": DailyUserSpend.calls + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(DailyUserSpend.cost_usd)
        result = await session.execute(stmt)
        total = result.scalar_one()
        logger.debug(f"User {user_id} spend on {day}: ${total}")
        return total

    async def _increment_global(self, session: AsyncSession, day: date, cost: Decimal) -> Decimal:
        insert = _insert_for(session)
        stmt = insert(DailyGlobalSpend).values(
            day=day, cost_usd=cost, calls=1, updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyGlobalSpend.day],
            set_={
                "cost_usd": DailyGlobalSpend.cost_usd + stmt.excluded.cost_usd,
                "calls": DailyGlobalSpend.calls + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(DailyGlobalSpend.cost_usd)
        result = await session.execute(stmt)
        return result.scalar_one()
