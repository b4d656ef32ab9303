from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import GRADES, SECTIONS


def _check_grade(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in GRADES:
        raise ValueError(f"grade must be one of {', '.join(GRADES)}")
    return v


def _check_section(v: Optional[str]) -> Optional[str]:
    if v is not None:
        v = v.upper()
        if v not in SECTIONS:
            raise ValueError(f"class_name must be one of {', '.join(SECTIONS)}")
    return v


class StudentCreate(BaseModel):
    """Student record for an existing user account with the student role."""

    user_id: UUID
    grade: str = "1"
    class_name: str = Field("A", description="Section letter")
    date_of_birth: Optional[date] = None

    @field_validator("grade")
    @classmethod
    def valid_grade(cls, v: str) -> str:
        return _check_grade(v)

    @field_validator("class_name")
    @classmethod
    def valid_section(cls, v: str) -> str:
        return _check_section(v)


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class ChangeClassRequest(BaseModel):
    grade: str
    class_name: str = Field(..., description="Section letter")

    @field_validator("grade")
    @classmethod
    def valid_grade(cls, v: str) -> str:
        return _check_grade(v)

    @field_validator("class_name")
    @classmethod
    def valid_section(cls, v: str) -> str:
        return _check_section(v)


class PersonRef(BaseModel):
    id: UUID
    name: str


class StudentResponse(BaseModel):
    id: UUID
    user_id: UUID
    student_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    current_grade: str
    current_class: str
    teacher: Optional[PersonRef] = None
    parents: List[PersonRef] = Field(default_factory=list)
    created_at: datetime
