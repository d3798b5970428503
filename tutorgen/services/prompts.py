"""
Prompt builders per generation kind
"""

from typing import Any, Dict, List, Optional

from tutorgen.adapters.llm.base import LLMMessage
from tutorgen.models.database import GenerationKind
from tutorgen.schemas.content import QUIZ_QUESTION_COUNT

JSON_RULES = (
    "Respond with ONLY valid JSON. No backticks, no markdown, no commentary. "
    "If unsure, return the closest valid JSON."
)

TEMPERATURES = {
    GenerationKind.PLAN: 0.7,
    GenerationKind.LESSON: 0.6,
    GenerationKind.QUIZ: 0.5,
    GenerationKind.FLASHCARDS: 0.5,
}

PLAN_SHAPE = """{
  "version": "1",
  "topic": "<string>",
  "total_days": <int 1-365>,
  "modules": [
    { "title": "<string>", "days": [
      { "day_index": <int>, "topic": "<string>", "objective": "<string>", "practice": "<string>", "assessment": "<string>", "est_minutes": <int 5-120> }
    ]}
  ],
  "citations": ["<source1>", "<source2>"]
}"""

LESSON_SHAPE = """{
  "topic": "<string>",
  "reading": "<~150-250 words>",
  "walkthrough": "<~200-300 words>",
  "quiz": [
    { "q": "<string>", "a": ["<opt1>","<opt2>","<opt3>","<opt4>"], "correct_index": <0-3> },
    { "q": "<string>", "a": ["<opt1>","<opt2>","<opt3>","<opt4>"], "correct_index": <0-3> }
  ],
  "exercise": "<a short practical task>",
  "citations": ["<1-3 sources>"],
  "est_minutes": <int 5-60>
}"""

QUIZ_SHAPE = """{
  "title": "<string>",
  "description": "<string>",
  "time_limit_minutes": <int 1-180>,
  "questions": [
    { "question": "<string>", "type": "multiple_choice", "options": ["<A>","<B>","<C>","<D>"], "correct_answer_index": <int>, "difficulty": "easy|medium|hard", "points": 1, "explanation": "<string>" },
    { "question": "<string>", "type": "true_false", "correct_answer_text": "true|false", "difficulty": "medium", "points": 1, "explanation": "<string>" },
    { "question": "Fill in the blank: ... ____ ...", "type": "fill_blank", "correct_answer_text": "<string>", "difficulty": "easy", "points": 1, "explanation": "<string>" }
  ]
}"""

FLASHCARDS_SHAPE = """{
  "cards": [
    { "front": "<term or question>", "back": "<definition or answer>", "difficulty": "easy|medium|hard" }
  ]
}"""


def _describe(params: Dict[str, Any]) -> str:
    return (
        f"Topic: {params.get('topic')}\n"
        f"Focus: {params.get('focus') or 'general'}\n"
        f"Level: {params.get('level') or 'beginner'}\n"
        f"Minutes per day: {params.get('minutes_per_day') or 15}\n"
        f"Locale: {params.get('locale') or 'en'}"
    )


def build_plan_messages(context: str, params: Dict[str, Any]) -> List[LLMMessage]:
    return [
        LLMMessage(
            role="system",
            content="You build multi-week learning plans strictly from provided context. "
                    "Output must validate against the PlanJSON schema.",
        ),
        LLMMessage(
            role="user",
            content=f"Context:\n{context}\n\nLearner:\n{_describe(params)}\n\n"
                    f"Task:\nCreate a plan in this shape:\n{PLAN_SHAPE}\n\n{JSON_RULES}",
        ),
    ]


def build_lesson_messages(
    context: str,
    params: Dict[str, Any],
    day_index: int,
    plan_outline: Optional[str] = None,
) -> List[LLMMessage]:
    outline = f"\nPlan for this day:\n{plan_outline}\n" if plan_outline else ""
    return [
        LLMMessage(role="system", content="You are an AI tutor. Output must validate against LessonJSON."),
        LLMMessage(
            role="user",
            content=f"Context:\n{context}\n\nLearner:\n{_describe(params)}\n"
                    f"Day: {day_index}\n{outline}\n"
                    f"Task:\nReturn:\n{LESSON_SHAPE}\n\n{JSON_RULES}",
        ),
    ]


def build_quiz_messages(
    context: str,
    params: Dict[str, Any],
    day_index: int,
    source_material: Optional[str] = None,
    difficulty: str = "medium",
) -> List[LLMMessage]:
    material = f"Lesson material:\n{source_material}\n\n" if source_material else ""
    return [
        LLMMessage(
            role="system",
            content="You are an expert quiz generator. Questions should test understanding, "
                    "not just memorization, and include an explanation for every answer.",
        ),
        LLMMessage(
            role="user",
            content=f"{material}Context:\n{context}\n\nLearner:\n{_describe(params)}\nDay: {day_index}\n\n"
                    f"Quiz requirements:\n"
                    f"- Difficulty: {difficulty}\n"
                    f"- Exactly {QUIZ_QUESTION_COUNT} questions\n"
                    f"- Mix of question types: mostly multiple_choice, some true_false and fill_blank\n\n"
                    f"Return:\n{QUIZ_SHAPE}\n\n{JSON_RULES}",
        ),
    ]


def build_flashcards_messages(
    context: str,
    params: Dict[str, Any],
    day_index: int,
    source_material: Optional[str] = None,
) -> List[LLMMessage]:
    material = f"\nLesson material:\n{source_material}\n" if source_material else ""
    return [
        LLMMessage(
            role="system",
            content="You create concise study flashcards covering the key terms and ideas of a lesson.",
        ),
        LLMMessage(
            role="user",
            content=f"Context:\n{context}\n{material}\nLearner:\n{_describe(params)}\nDay: {day_index}\n\n"
                    f"Task:\nReturn 6-12 cards in this shape:\n{FLASHCARDS_SHAPE}\n\n{JSON_RULES}",
        ),
    ]


def build_messages(
    kind: GenerationKind,
    context: str,
    params: Dict[str, Any],
    day_index: Optional[int] = None,
    source_material: Optional[str] = None,
) -> List[LLMMessage]:
    kind = GenerationKind(kind)
    if kind == GenerationKind.PLAN:
        return build_plan_messages(context, params)
    if kind == GenerationKind.LESSON:
        return build_lesson_messages(context, params, day_index or 1, source_material)
    if kind == GenerationKind.QUIZ:
        return build_quiz_messages(context, params, day_index or 1, source_material)
    return build_flashcards_messages(context, params, day_index or 1, source_material)


# ============================================================================
# RETRIEVAL QUERIES
# ============================================================================

def retrieval_query(kind: GenerationKind, params: Dict[str, Any], day_index: Optional[int] = None) -> str:
    kind = GenerationKind(kind)
    topic = params.get("topic") or ""
    focus = params.get("focus") or "general"
    level = params.get("level") or "beginner"
    if kind == GenerationKind.PLAN:
        return f"{topic} - {focus}"
    if kind == GenerationKind.LESSON:
        return f"{topic}: {focus} - {level} level daily lesson for day {day_index or 1}"
    if kind == GenerationKind.QUIZ:
        return f"{topic} - day {day_index or 1} review questions"
    return f"{topic} - key terms and definitions"


# ============================================================================
# SOURCE MATERIAL
# ============================================================================

def plan_day_outline(plan: Optional[Dict[str, Any]], day_index: int) -> Optional[str]:
    """The plan's entry for a day, as prompt text"""
    for module in (plan or {}).get("modules", []):
        for day in module.get("days", []):
            if day.get("day_index") == day_index:
                return (
                    f"Module: {module.get('title')}\n"
                    f"Topic: {day.get('topic')}\n"
                    f"Objective: {day.get('objective')}\n"
                    f"Practice: {day.get('practice')}\n"
                    f"Assessment: {day.get('assessment')}"
                )
    return None


def lesson_material(lesson: Optional[Dict[str, Any]]) -> Optional[str]:
    if not lesson:
        return None
    return (
        f"Topic: {lesson.get('topic')}\n"
        f"Reading: {lesson.get('reading')}\n"
        f"Walkthrough: {lesson.get('walkthrough')}\n"
        f"Exercise: {lesson.get('exercise')}"
    )
