"""
Database Models for tutorgen
"""

from .database import (
    Base,
    # Enums
    GenerationKind,
    DAY_UNIT_KINDS,
    # Models
    LearningGoal,
    ContentTemplate,
    DayUnitTemplate,
    DayUnitLog,
    AICallLog,
    DailyUserSpend,
    DailyGlobalSpend,
    AdminConfig,
    CorpusPack,
    CorpusChunk,
)

__all__ = [
    "Base",
    # Enums
    "GenerationKind",
    "DAY_UNIT_KINDS",
    # Models
    "LearningGoal",
    "ContentTemplate",
    "DayUnitTemplate",
    "DayUnitLog",
    "AICallLog",
    "DailyUserSpend",
    "DailyGlobalSpend",
    "AdminConfig",
    "CorpusPack",
    "CorpusChunk",
]
