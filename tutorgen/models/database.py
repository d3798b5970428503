"""
tutorgen Database Models
PostgreSQL (pgvector) in production, SQLite for local development
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from uuid import uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, Date,
    ForeignKey, Enum, JSON, Numeric, Index, UniqueConstraint, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

EMBEDDING_DIM = 1536

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")
EmbeddingType = JSON().with_variant(Vector(EMBEDDING_DIM), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class GenerationKind(str, PyEnum):
    PLAN = "plan"
    LESSON = "lesson"
    QUIZ = "quiz"
    FLASHCARDS = "flashcards"


# Kinds produced once per goal day rather than once per signature
DAY_UNIT_KINDS = frozenset({GenerationKind.LESSON, GenerationKind.QUIZ, GenerationKind.FLASHCARDS})


# ============================================================================
# LEARNING GOALS
# ============================================================================

class LearningGoal(Base):
    """A learner's goal; owned by the account service, read here for generation context"""
    __tablename__ = "learning_goals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(String(64), nullable=False, index=True)

    topic = Column(String(255), nullable=False)
    focus = Column(String(255))
    level = Column(String(32))
    minutes_per_day = Column(Integer)
    locale = Column(String(16))
    timezone = Column(String(64), default="UTC", nullable=False)

    # Shared plan this goal follows; per-day units are reused across goals on the same plan
    plan_template_id = Column(Uuid(as_uuid=True), ForeignKey("content_templates.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


# ============================================================================
# CONTENT CACHE
# ============================================================================

class ContentTemplate(Base):
    """
    Shared, content-addressed generated content.
    Write-once: new content for the same parameters requires a new version.
    """
    __tablename__ = "content_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    kind = Column(Enum(GenerationKind), nullable=False)
    signature = Column(String(64), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    content = Column(JSONType, nullable=False)
    model = Column(String(100))
    created_by = Column(String(64))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("kind", "signature", "version", name="uq_content_template_signature"),
    )


class DayUnitTemplate(Base):
    """Per-day content shared by every goal following the same plan template"""
    __tablename__ = "day_unit_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    template_id = Column(
        Uuid(as_uuid=True), ForeignKey("content_templates.id", ondelete="CASCADE"), nullable=False
    )
    kind = Column(Enum(GenerationKind), nullable=False)
    day_index = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    content = Column(JSONType, nullable=False)
    model = Column(String(100))
    created_by = Column(String(64))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("template_id", "kind", "day_index", "version", name="uq_day_unit_template"),
    )


class DayUnitLog(Base):
    """Per-user fallback store for day content when the goal has no plan template"""
    __tablename__ = "day_unit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(String(64), nullable=False)
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("learning_goals.id", ondelete="CASCADE"), nullable=False)
    kind = Column(Enum(GenerationKind), nullable=False)
    day_index = Column(Integer, nullable=False)

    content = Column(JSONType, nullable=False)
    model = Column(String(100))
    citations = Column(JSONType, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "goal_id", "kind", "day_index", name="uq_day_unit_log"),
    )


# ============================================================================
# COST LEDGER
# ============================================================================

class AICallLog(Base):
    """Append-only audit log: one row per model attempt, successful or not"""
    __tablename__ = "ai_call_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(String(64))
    goal_id = Column(Uuid(as_uuid=True))

    endpoint = Column(Enum(GenerationKind), nullable=False)
    model = Column(String(100), nullable=False)
    signature = Column(String(64))
    attempt = Column(Integer, default=1, nullable=False)

    prompt_tokens = Column(Integer, default=0, nullable=False)
    completion_tokens = Column(Integer, default=0, nullable=False)
    total_tokens = Column(Integer, default=0, nullable=False)
    cost_usd = Column(Numeric(12, 6), default=Decimal("0"), nullable=False)
    latency_ms = Column(Integer, default=0, nullable=False)

    success = Column(Boolean, nullable=False)
    error_text = Column(Text)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_call_log_created", "created_at"),
        Index("idx_call_log_user_created", "user_id", "created_at"),
    )


class DailyUserSpend(Base):
    """Per-user daily spend rollup, incremented atomically"""
    __tablename__ = "ai_daily_user_spend"

    user_id = Column(String(64), primary_key=True)
    day = Column(Date, primary_key=True)
    cost_usd = Column(Numeric(12, 6), default=Decimal("0"), nullable=False)
    calls = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class DailyGlobalSpend(Base):
    """Global daily spend rollup, incremented atomically"""
    __tablename__ = "ai_daily_global_spend"

    day = Column(Date, primary_key=True)
    cost_usd = Column(Numeric(12, 6), default=Decimal("0"), nullable=False)
    calls = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdminConfig(Base):
    """Process-wide budget caps and circuit breaker (single row, id=1)"""
    __tablename__ = "admin_config"

    id = Column(Integer, primary_key=True, default=1)
    daily_user_budget_usd = Column(Numeric(10, 4), nullable=False)
    daily_global_budget_usd = Column(Numeric(10, 4), nullable=False)
    disable_endpoints = Column(JSONType, default=list, nullable=False)
    alert_webhook = Column(String(500))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ============================================================================
# RETRIEVAL CORPUS
# ============================================================================

class CorpusPack(Base):
    """A versioned group of corpus chunks imported from one topic pack"""
    __tablename__ = "corpus_packs"

    id = Column(String(128), primary_key=True)
    topic = Column(String(255), nullable=False)
    subtopic = Column(String(255))
    version = Column(String(32), default="1", nullable=False)
    locale = Column(String(16), default="en", nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CorpusChunk(Base):
    """Retrieval unit; immutable once ingested"""
    __tablename__ = "corpus_chunks"

    id = Column(String(128), primary_key=True)
    pack_id = Column(String(128), ForeignKey("corpus_packs.id", ondelete="CASCADE"), nullable=False)

    topic = Column(String(255), nullable=False)
    subtopic = Column(String(255))
    text_summary = Column(Text, nullable=False)
    tags = Column(JSONType, default=list)
    source_ref = Column(JSONType, default=dict)

    embedding = Column(EmbeddingType, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_chunk_topic", "topic"),
    )
