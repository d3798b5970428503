"""
Strict schema validation of parsed model output
"""

from typing import Any, Dict, Type

from pydantic import BaseModel, ValidationError

from tutorgen.models.database import GenerationKind
from tutorgen.schemas.content import FlashcardsJSON, LessonJSON, PlanJSON, QuizJSON
from .errors import SchemaValidationError

SCHEMAS: Dict[GenerationKind, Type[BaseModel]] = {
    GenerationKind.PLAN: PlanJSON,
    GenerationKind.LESSON: LessonJSON,
    GenerationKind.QUIZ: QuizJSON,
    GenerationKind.FLASHCARDS: FlashcardsJSON,
}


def validate_content(kind: GenerationKind, payload: Any) -> Dict[str, Any]:
    """Return the normalized content for kind, or raise SchemaValidationError"""
    schema = SCHEMAS[GenerationKind(kind)]
    try:
        model = schema.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise SchemaValidationError(
            f"{schema.__name__} validation failed with {len(errors)} error(s)",
            errors,
        )
    return model.model_dump(mode="json", exclude_none=True)
