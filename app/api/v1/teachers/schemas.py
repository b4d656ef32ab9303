from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import GRADES, SECTIONS


class TeacherCreate(BaseModel):
    """Teacher record for an existing user account with the teacher role."""

    user_id: UUID


class TeacherUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None


class AssignClassRequest(BaseModel):
    teacher_id: UUID
    grade: str
    class_name: str = Field(..., description="Section letter")

    @field_validator("grade")
    @classmethod
    def valid_grade(cls, v: str) -> str:
        if v not in GRADES:
            raise ValueError(f"grade must be one of {', '.join(GRADES)}")
        return v

    @field_validator("class_name")
    @classmethod
    def valid_section(cls, v: str) -> str:
        v = v.upper()
        if v not in SECTIONS:
            raise ValueError(f"class_name must be one of {', '.join(SECTIONS)}")
        return v


class AssignedClassInfo(BaseModel):
    grade: str
    class_name: str


class TeacherResponse(BaseModel):
    id: UUID
    user_id: UUID
    teacher_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    assigned_class: Optional[AssignedClassInfo] = None
    created_at: datetime
