from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.enums import UserRole


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    username: str
    email: EmailStr
    role: UserRole
    first_name: str
    last_name: str


class UserDetail(UserInfo):
    phone: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleRecordInfo(BaseModel):
    """Role-specific record created for the user (student, teacher, ...)."""

    id: UUID
    role: UserRole
    code: str


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    user: UserInfo
    role_record: Optional[RoleRecordInfo] = None


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    token_type: str = "bearer"
    user: UserInfo
    role_info: Optional[RoleRecordInfo] = None


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role and ownership checks."""

    id: UUID
    username: str
    email: str
    role: UserRole
