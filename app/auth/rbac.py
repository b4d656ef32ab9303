from typing import Iterable

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import AuthorizationError
from app.core.models import Parent, Student, Teacher


def require_roles(*roles: UserRole):
    """
    Dependency factory to restrict an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST))
    """
    allowed = {UserRole(r) for r in roles}

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {current_user.role.value} is not authorized to access this route",
            )
        return current_user

    return _checker


async def ensure_student_access(
    db: AsyncSession,
    current_user: CurrentUser,
    student: Student,
    staff_roles: Iterable[UserRole] = (UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST),
) -> None:
    """
    Ownership check on top of the role check: students see only themselves,
    parents only their linked children. Staff roles listed in staff_roles pass.
    """
    if current_user.role in set(staff_roles):
        return
    if current_user.role == UserRole.STUDENT and student.user_id == current_user.id:
        return
    if current_user.role == UserRole.PARENT:
        result = await db.execute(select(Parent).where(Parent.user_id == current_user.id))
        parent = result.scalar_one_or_none()
        if parent and any(child.id == student.id for child in parent.children):
            return
    raise AuthorizationError("Not authorized to access this student's records")


async def ensure_teacher_access(db: AsyncSession, current_user: CurrentUser, teacher: Teacher) -> None:
    """Teachers may read only their own class data; admins read any."""
    if current_user.role == UserRole.ADMIN:
        return
    if current_user.role == UserRole.TEACHER and teacher.user_id == current_user.id:
        return
    raise AuthorizationError("Not authorized to access this teacher's class")
