"""
Admin Config Service
Budget caps and circuit breaker, read through a short TTL cache
"""

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, FrozenSet, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.config import Settings, get_settings
from tutorgen.models.database import AdminConfig, GenerationKind

logger = logging.getLogger(__name__)

ADMIN_CONFIG_ROW_ID = 1


@dataclass(frozen=True)
class AdminConfigSnapshot:
    daily_user_budget_usd: Decimal
    daily_global_budget_usd: Decimal
    disabled_endpoints: FrozenSet[str] = field(default_factory=frozenset)
    alert_webhook: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminConfigSnapshot":
        return cls(
            daily_user_budget_usd=Decimal(str(settings.DAILY_USER_BUDGET_USD)),
            daily_global_budget_usd=Decimal(str(settings.DAILY_GLOBAL_BUDGET_USD)),
            disabled_endpoints=frozenset(settings.disabled_endpoints_list),
            alert_webhook=settings.ALERT_WEBHOOK_URL,
        )

    @classmethod
    def from_row(cls, row: AdminConfig, defaults: "AdminConfigSnapshot") -> "AdminConfigSnapshot":
        disabled = row.disable_endpoints
        return cls(
            daily_user_budget_usd=Decimal(str(row.daily_user_budget_usd)),
            daily_global_budget_usd=Decimal(str(row.daily_global_budget_usd)),
            disabled_endpoints=(
                frozenset(str(e) for e in disabled) if isinstance(disabled, list)
                else defaults.disabled_endpoints
            ),
            alert_webhook=row.alert_webhook or defaults.alert_webhook,
        )

    def to_dict(self) -> dict:
        return {
            "daily_user_budget_usd": float(self.daily_user_budget_usd),
            "daily_global_budget_usd": float(self.daily_global_budget_usd),
            "disable_endpoints": sorted(self.disabled_endpoints),
            "alert_webhook": self.alert_webhook,
        }


class AdminConfigService:
    """
    Loads the single admin_config row.

    Snapshots are cached for ttl seconds; a missing row or a failed read
    falls back to the environment defaults.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.ttl = self.settings.ADMIN_CONFIG_TTL_SECONDS if ttl is None else ttl
        self.clock = clock
        self._cached: Optional[AdminConfigSnapshot] = None
        self._cached_at = 0.0

    @property
    def defaults(self) -> AdminConfigSnapshot:
        return AdminConfigSnapshot.from_settings(self.settings)

    async def load(self) -> AdminConfigSnapshot:
        now = self.clock()
        if self._cached is not None and now - self._cached_at < self.ttl:
            return self._cached

        snapshot = await self._read()
        self._cached = snapshot
        self._cached_at = now
        return snapshot

    async def _read(self) -> AdminConfigSnapshot:
        defaults = self.defaults
        try:
            async with self.session_factory() as session:
                row = await session.get(AdminConfig, ADMIN_CONFIG_ROW_ID)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch admin config, using defaults: {e}")
            return defaults

        if row is None:
            return defaults
        return AdminConfigSnapshot.from_row(row, defaults)

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def update(
        self,
        daily_user_budget_usd: Optional[float] = None,
        daily_global_budget_usd: Optional[float] = None,
        disable_endpoints: Optional[list] = None,
        alert_webhook: Optional[str] = None,
    ) -> AdminConfigSnapshot:
        """Apply the given changes to the config row, creating it if absent"""
        defaults = self.defaults
        async with self.session_factory() as session:
            result = await session.execute(
                select(AdminConfig).where(AdminConfig.id == ADMIN_CONFIG_ROW_ID)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = AdminConfig(
                    id=ADMIN_CONFIG_ROW_ID,
                    daily_user_budget_usd=defaults.daily_user_budget_usd,
                    daily_global_budget_usd=defaults.daily_global_budget_usd,
                    disable_endpoints=sorted(defaults.disabled_endpoints),
                    alert_webhook=defaults.alert_webhook,
                )
                session.add(row)

            if daily_user_budget_usd is not None:
                row.daily_user_budget_usd = Decimal(str(daily_user_budget_usd))
            if daily_global_budget_usd is not None:
                row.daily_global_budget_usd = Decimal(str(daily_global_budget_usd))
            if disable_endpoints is not None:
                row.disable_endpoints = sorted({GenerationKind(e).value for e in disable_endpoints})
            if alert_webhook is not None:
                row.alert_webhook = alert_webhook or None

            await session.commit()
            await session.refresh(row)
            snapshot = AdminConfigSnapshot.from_row(row, defaults)

        logger.info(f"Admin config updated: {snapshot.to_dict()}")
        self.invalidate()
        return snapshot

    async def is_endpoint_disabled(self, kind) -> bool:
        config = await self.load()
        return getattr(kind, "value", kind) in config.disabled_endpoints
