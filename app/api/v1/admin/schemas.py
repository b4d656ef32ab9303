from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import CLASS_NAMES, Term


class FeeStructureUpsert(BaseModel):
    grade: str = Field(..., description="Class name, e.g. 2A")
    term: Term
    academic_year: str = Field(..., min_length=4, max_length=9)
    amount: Decimal = Field(..., ge=0)
    is_active: Optional[bool] = None

    @field_validator("grade")
    @classmethod
    def valid_class(cls, v: str) -> str:
        v = v.upper()
        if v not in CLASS_NAMES:
            raise ValueError(f"grade must be one of {', '.join(CLASS_NAMES)}")
        return v


class FeeStructureResponse(BaseModel):
    id: UUID
    grade: str
    term: Term
    academic_year: str
    amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
