"""
Content Cache

Write-once stores for generated content:
- content_templates: shared, addressed by (kind, signature, version)
- day_unit_templates: shared per-day units of a template
- day_unit_logs: per-user fallback when a goal has no template

insert() is insert-or-fetch-canonical: the loser of a race gets the
winner's row back and its own content is discarded.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.models.database import ContentTemplate, DayUnitLog, DayUnitTemplate, GenerationKind
from .errors import CacheRaceConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateKey:
    kind: GenerationKind
    signature: str
    version: int = 1


@dataclass(frozen=True)
class DayUnitKey:
    template_id: UUID
    kind: GenerationKind
    day_index: int
    version: int = 1


@dataclass(frozen=True)
class UserUnitKey:
    user_id: str
    goal_id: UUID
    kind: GenerationKind
    day_index: int


CacheKey = Union[TemplateKey, DayUnitKey, UserUnitKey]


@dataclass(frozen=True)
class CachedContent:
    id: UUID
    content: Dict[str, Any]
    model: Optional[str]
    created_at: Optional[datetime]


def _lookup_query(key: CacheKey):
    if isinstance(key, TemplateKey):
        return select(ContentTemplate).where(
            ContentTemplate.kind == GenerationKind(key.kind),
            ContentTemplate.signature == key.signature,
            ContentTemplate.version == key.version,
        )
    if isinstance(key, DayUnitKey):
        return select(DayUnitTemplate).where(
            DayUnitTemplate.template_id == key.template_id,
            DayUnitTemplate.kind == GenerationKind(key.kind),
            DayUnitTemplate.day_index == key.day_index,
            DayUnitTemplate.version == key.version,
        )
    if isinstance(key, UserUnitKey):
        return select(DayUnitLog).where(
            DayUnitLog.user_id == key.user_id,
            DayUnitLog.goal_id == key.goal_id,
            DayUnitLog.kind == GenerationKind(key.kind),
            DayUnitLog.day_index == key.day_index,
        )
    raise TypeError(f"Unsupported cache key: {key!r}")


def _new_row(key: CacheKey, content: Dict[str, Any], model: Optional[str], created_by: Optional[str]):
    if isinstance(key, TemplateKey):
        return ContentTemplate(
            kind=GenerationKind(key.kind),
            signature=key.signature,
            version=key.version,
            content=content,
            model=model,
            created_by=created_by,
        )
    if isinstance(key, DayUnitKey):
        return DayUnitTemplate(
            template_id=key.template_id,
            kind=GenerationKind(key.kind),
            day_index=key.day_index,
            version=key.version,
            content=content,
            model=model,
            created_by=created_by,
        )
    if isinstance(key, UserUnitKey):
        return DayUnitLog(
            user_id=key.user_id,
            goal_id=key.goal_id,
            kind=GenerationKind(key.kind),
            day_index=key.day_index,
            content=content,
            model=model,
            citations=list(content.get("citations") or []),
        )
    raise TypeError(f"Unsupported cache key: {key!r}")


def _to_cached(row) -> CachedContent:
    return CachedContent(id=row.id, content=row.content, model=row.model, created_at=row.created_at)


class ContentCache:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def lookup(self, key: CacheKey) -> Optional[CachedContent]:
        async with self.session_factory() as session:
            result = await session.execute(_lookup_query(key))
            row = result.scalar_one_or_none()
            return _to_cached(row) if row is not None else None

    async def insert(
        self,
        key: CacheKey,
        content: Dict[str, Any],
        model: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> CachedContent:
        """Store content under key, or return the row that already holds key"""
        async with self.session_factory() as session:
            row = _new_row(key, content, model, created_by)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
            else:
                return _to_cached(row)

        canonical = await self.lookup(key)
        if canonical is None:
            raise CacheRaceConflict(f"Insert conflicted but no canonical row found for {key!r}")
        logger.info(f"Cache race on {key!r}: discarded local content, returning canonical row {canonical.id}")
        return canonical
