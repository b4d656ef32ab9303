import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    RoleRecordInfo,
    UserDetail,
    UserInfo,
)
from app.auth.security import hash_password, token_for_user, verify_password
from app.core.enums import CLASS_NAMES, STAFF_ROLES, UserRole
from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ServiceError
from app.core.identifiers import generate_role_code
from app.core.models import Admin, Parent, Receptionist, Student, Teacher

logger = logging.getLogger(__name__)

DEFAULT_STUDENT_GRADE = "1"
DEFAULT_STUDENT_CLASS = CLASS_NAMES[0]  # "1A"

# role -> (model, code attribute)
ROLE_RECORDS = {
    UserRole.STUDENT: (Student, "student_code"),
    UserRole.TEACHER: (Teacher, "teacher_code"),
    UserRole.PARENT: (Parent, "parent_code"),
    UserRole.ADMIN: (Admin, "admin_code"),
    UserRole.RECEPTIONIST: (Receptionist, "receptionist_code"),
}


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def _role_record_info(role: UserRole, record) -> Optional[RoleRecordInfo]:
    if record is None:
        return None
    _, code_attr = ROLE_RECORDS[role]
    return RoleRecordInfo(id=record.id, role=role, code=getattr(record, code_attr))


async def _has_any_user(db: AsyncSession) -> bool:
    result = await db.execute(select(func.count(User.id)))
    return (result.scalar() or 0) > 0


async def _create_role_record(db: AsyncSession, user: User, role: UserRole):
    model, code_attr = ROLE_RECORDS[role]
    code = await generate_role_code(db, getattr(model, code_attr), role)
    kwargs = {"user": user, code_attr: code}
    if role == UserRole.STUDENT:
        kwargs.update(current_grade=DEFAULT_STUDENT_GRADE, current_class=DEFAULT_STUDENT_CLASS)
    record = model(**kwargs)
    db.add(record)
    return record


async def register_user(
    db: AsyncSession,
    payload: RegisterRequest,
    created_by: Optional[CurrentUser] = None,
) -> RegisterResponse:
    # Staff accounts are created by an admin; the very first account bootstraps the school as admin.
    if payload.role in STAFF_ROLES:
        is_admin = created_by is not None and created_by.role == UserRole.ADMIN
        bootstrap = payload.role == UserRole.ADMIN and not await _has_any_user(db)
        if not is_admin and not bootstrap:
            raise AuthorizationError("Only an admin can register staff accounts")

    existing = await db.execute(
        select(User.id).where(
            or_(func.lower(User.email) == payload.email.lower(), User.username == payload.username)
        )
    )
    if existing.first() is not None:
        raise ConflictError("User with this email or username already exists")

    try:
        user = User(
            username=payload.username,
            email=payload.email.lower(),
            password_hash=hash_password(payload.password),
            role=payload.role.value,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        record = await _create_role_record(db, user, payload.role)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("User with this email or username already exists") from e

    logger.info(f"Registered {payload.role.value} user {user.username}")
    return RegisterResponse(
        message="User registered successfully",
        token=token_for_user(user),
        user=_user_info(user),
        role_record=_role_record_info(payload.role, record),
    )


async def _find_role_record(db: AsyncSession, user: User):
    role = UserRole(user.role)
    model, _ = ROLE_RECORDS[role]
    result = await db.execute(select(model).where(model.user_id == user.id))
    return role, result.scalar_one_or_none()


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    user_result = await db.execute(select(User).where(func.lower(User.email) == payload.email.lower()))
    user: Optional[User] = user_result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)
    if not user.is_active:
        raise AuthorizationError("Account is deactivated")

    user.last_login = datetime.now(timezone.utc)
    await db.commit()

    role, record = await _find_role_record(db, user)
    logger.info(f"User {user.username} logged in")
    return LoginResponse(
        message="Login successful",
        token=token_for_user(user),
        user=_user_info(user),
        role_info=_role_record_info(role, record),
    )


async def get_user(db: AsyncSession, user_id: UUID) -> UserDetail:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return UserDetail.model_validate(user)


async def list_users(db: AsyncSession) -> List[UserDetail]:
    result = await db.execute(select(User).order_by(User.created_at))
    return [UserDetail.model_validate(u) for u in result.scalars().all()]


