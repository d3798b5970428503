"""
Pydantic Schemas for generated content and API Request/Response validation
"""

from .content import (
    QUIZ_QUESTION_COUNT,
    PlanJSON,
    LessonJSON,
    QuizJSON,
    FlashcardsJSON,
)
from .corpus import (
    Source,
    Chunk,
    TopicPack,
)
from .generation import (
    GenerateRequest,
    DayUnitRequest,
    GenerationResponse,
)
from .admin import (
    AdminConfigResponse,
    AdminConfigUpdate,
)

__all__ = [
    # Content
    "QUIZ_QUESTION_COUNT",
    "PlanJSON",
    "LessonJSON",
    "QuizJSON",
    "FlashcardsJSON",
    # Corpus
    "Source",
    "Chunk",
    "TopicPack",
    # Generation API
    "GenerateRequest",
    "DayUnitRequest",
    "GenerationResponse",
    # Admin
    "AdminConfigResponse",
    "AdminConfigUpdate",
]
