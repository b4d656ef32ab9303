from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LinkChildRequest(BaseModel):
    student: str = Field(..., description="Student id or student code")


class ChildInfo(BaseModel):
    id: UUID
    student_code: str
    name: str
    current_class: str


class ParentResponse(BaseModel):
    id: UUID
    user_id: UUID
    parent_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    occupation: Optional[str] = None
    children: List[ChildInfo] = Field(default_factory=list)
