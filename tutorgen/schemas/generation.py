"""
Generation API Schemas
"""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class GenerateRequest(BaseModel):
    """Signature-addressed generation request (plans)"""
    topic: str = Field(..., min_length=1, max_length=255)
    focus: Optional[str] = Field(None, max_length=255)
    level: Optional[str] = Field(None, max_length=32)
    minutes_per_day: Optional[int] = Field(None, ge=5, le=240)
    locale: Optional[str] = Field(None, max_length=16)

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("topic must not be blank")
        return v


class DayUnitRequest(BaseModel):
    """Day-unit request for a goal; defaults to today's day index"""
    day_index: Optional[int] = Field(None, ge=1)


class GenerationResponse(BaseModel):
    kind: str
    signature: str
    cached: bool
    template_id: Optional[UUID] = None
    day_index: Optional[int] = None
    attempts: int = 0
    cost_usd: float = 0.0
    retrieval_source: Optional[str] = None
    content: Dict[str, Any]
