from tutorgen.models import GenerationKind
from tutorgen.services.prompts import (
    build_messages,
    lesson_material,
    plan_day_outline,
    retrieval_query,
)

from .conftest import VALID_LESSON, VALID_PLAN

PARAMS = {"topic": "Python", "focus": "loops", "level": "beginner"}


def test_retrieval_queries_per_kind():
    assert retrieval_query(GenerationKind.PLAN, PARAMS) == "Python - loops"
    assert retrieval_query(GenerationKind.LESSON, PARAMS, 3) == "Python: loops - beginner level daily lesson for day 3"
    assert retrieval_query(GenerationKind.QUIZ, PARAMS, 2) == "Python - day 2 review questions"
    assert retrieval_query(GenerationKind.FLASHCARDS, PARAMS, 2) == "Python - key terms and definitions"


def test_plan_messages_carry_context_and_learner():
    messages = build_messages(GenerationKind.PLAN, "• some context", PARAMS)
    assert [m.role for m in messages] == ["system", "user"]
    assert "• some context" in messages[1].content
    assert "Focus: loops" in messages[1].content
    assert "Minutes per day: 15" in messages[1].content


def test_lesson_messages_include_plan_outline():
    outline = plan_day_outline(VALID_PLAN, 2)
    messages = build_messages(GenerationKind.LESSON, "ctx", PARAMS, 2, outline)
    assert "Topic: while loops" in messages[1].content
    assert "Day: 2" in messages[1].content


def test_plan_day_outline_for_missing_day():
    assert plan_day_outline(VALID_PLAN, 9) is None
    assert plan_day_outline(None, 1) is None


def test_lesson_material():
    material = lesson_material(VALID_LESSON)
    assert material.startswith("Topic: for loops")
    assert VALID_LESSON["exercise"] in material
    assert lesson_material(None) is None
