"""
Generated Content Schemas
Strict shapes that model output must satisfy before it is cached
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

QUIZ_QUESTION_COUNT = 5
LESSON_QUIZ_COUNT = 2


class _Strict(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# ============================================================================
# PLAN
# ============================================================================

class PlanDay(_Strict):
    day_index: int = Field(..., ge=1)
    topic: str = Field(..., min_length=1, max_length=300)
    objective: str = Field(..., min_length=1, max_length=1000)
    practice: str = Field(..., min_length=1, max_length=1000)
    assessment: str = Field(..., min_length=1, max_length=1000)
    est_minutes: int = Field(..., ge=5, le=120)


class PlanModule(_Strict):
    title: str = Field(..., min_length=1, max_length=300)
    days: List[PlanDay] = Field(..., min_length=1)


class PlanJSON(_Strict):
    """Multi-week plan"""
    version: Literal["1"]
    topic: str = Field(..., min_length=1, max_length=300)
    total_days: int = Field(..., ge=1, le=365)
    modules: List[PlanModule] = Field(..., min_length=1)
    citations: List[str] = Field(..., min_length=1)


# ============================================================================
# LESSON
# ============================================================================

class LessonQuizItem(_Strict):
    q: str = Field(..., min_length=1, max_length=500)
    a: List[str] = Field(..., min_length=2, max_length=6)
    correct_index: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_correct_index(self) -> "LessonQuizItem":
        if self.correct_index >= len(self.a):
            raise ValueError("correct_index must point at one of the options")
        return self


class LessonJSON(_Strict):
    """One day's lesson"""
    topic: str = Field(..., min_length=1, max_length=300)
    reading: str = Field(..., min_length=1, max_length=4000)
    walkthrough: str = Field(..., min_length=1, max_length=5000)
    quiz: List[LessonQuizItem] = Field(..., min_length=LESSON_QUIZ_COUNT, max_length=LESSON_QUIZ_COUNT)
    exercise: str = Field(..., min_length=1, max_length=2000)
    citations: List[str] = Field(..., min_length=1, max_length=10)
    est_minutes: int = Field(..., ge=5, le=60)


# ============================================================================
# QUIZ
# ============================================================================

Difficulty = Literal["easy", "medium", "hard"]


class QuizQuestion(_Strict):
    question: str = Field(..., min_length=1, max_length=500)
    type: Literal["multiple_choice", "true_false", "fill_blank"]
    options: Optional[List[str]] = None
    correct_answer_index: Optional[int] = None
    correct_answer_text: Optional[str] = Field(None, max_length=200)
    difficulty: Difficulty = "medium"
    points: int = Field(1, ge=1, le=10)
    explanation: str = Field(..., min_length=1, max_length=1000)

    @model_validator(mode="after")
    def check_answer_shape(self) -> "QuizQuestion":
        if self.type == "multiple_choice":
            if not self.options or len(self.options) < 2:
                raise ValueError("multiple_choice questions need at least 2 options")
            if self.correct_answer_index is None or not 0 <= self.correct_answer_index < len(self.options):
                raise ValueError("multiple_choice questions need a valid correct_answer_index")
        elif self.type == "true_false":
            if (self.correct_answer_text or "").lower() not in ("true", "false"):
                raise ValueError("true_false questions need correct_answer_text 'true' or 'false'")
        elif not self.correct_answer_text:
            raise ValueError("fill_blank questions need correct_answer_text")
        return self


class QuizJSON(_Strict):
    """Quiz for a day; the question count is fixed"""
    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., max_length=1000)
    time_limit_minutes: int = Field(..., ge=1, le=180)
    questions: List[QuizQuestion] = Field(..., min_length=QUIZ_QUESTION_COUNT, max_length=QUIZ_QUESTION_COUNT)


# ============================================================================
# FLASHCARDS
# ============================================================================

class Flashcard(_Strict):
    front: str = Field(..., min_length=1, max_length=300)
    back: str = Field(..., min_length=1, max_length=1000)
    difficulty: Difficulty = "medium"


class FlashcardsJSON(_Strict):
    cards: List[Flashcard] = Field(..., min_length=4, max_length=20)
