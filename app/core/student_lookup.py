"""
Student resolution by either key a caller may hold.

Clients address students by the internal UUID or by the human-readable student_code.
parse_student_key tags the raw value once; resolve_student is the single resolver.
"""

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.models import Student


@dataclass(frozen=True)
class ById:
    id: UUID


@dataclass(frozen=True)
class ByCode:
    code: str


StudentKey = Union[ById, ByCode]


def parse_student_key(raw: Union[str, UUID, ById, ByCode]) -> StudentKey:
    if isinstance(raw, (ById, ByCode)):
        return raw
    if isinstance(raw, UUID):
        return ById(raw)
    text = str(raw).strip()
    try:
        return ById(UUID(text))
    except ValueError:
        return ByCode(text)


async def find_student(db: AsyncSession, key: StudentKey) -> Optional[Student]:
    if isinstance(key, ById):
        stmt = select(Student).where(Student.id == key.id)
    else:
        stmt = select(Student).where(Student.student_code == key.code)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_student(db: AsyncSession, raw: Union[str, UUID, ById, ByCode]) -> Student:
    student = await find_student(db, parse_student_key(raw))
    if student is None:
        raise NotFoundError("Student not found")
    return student
