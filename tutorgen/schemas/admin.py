"""
Admin Config Schemas
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tutorgen.models.database import GenerationKind


class AdminConfigResponse(BaseModel):
    daily_user_budget_usd: float
    daily_global_budget_usd: float
    disable_endpoints: List[str]
    alert_webhook: Optional[str] = None


class AdminConfigUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    daily_user_budget_usd: Optional[float] = Field(None, ge=0)
    daily_global_budget_usd: Optional[float] = Field(None, ge=0)
    disable_endpoints: Optional[List[str]] = None
    alert_webhook: Optional[str] = Field(None, max_length=500)

    @field_validator("disable_endpoints")
    @classmethod
    def validate_endpoints(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        valid = {k.value for k in GenerationKind}
        cleaned = [e.strip().lower() for e in v if e.strip()]
        unknown = [e for e in cleaned if e not in valid]
        if unknown:
            raise ValueError(f"Unknown endpoints: {unknown}. Must be among {sorted(valid)}")
        return cleaned
