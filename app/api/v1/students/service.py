import logging
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import student_has_billing_history
from app.auth.models import User
from app.core.enums import UserRole
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.identifiers import generate_role_code
from app.core.models import Student, Teacher

from .schemas import ChangeClassRequest, PersonRef, StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)


def _person(record) -> Optional[PersonRef]:
    if record is None or record.user is None:
        return None
    return PersonRef(id=record.id, name=record.user.full_name)


def student_to_response(student: Student) -> StudentResponse:
    user = student.user
    return StudentResponse(
        id=student.id,
        user_id=student.user_id,
        student_code=student.student_code,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        date_of_birth=student.date_of_birth,
        current_grade=student.current_grade,
        current_class=student.current_class,
        teacher=_person(student.teacher),
        parents=[p for p in (_person(parent) for parent in student.parents) if p],
        created_at=student.created_at,
    )


async def find_homeroom_teacher(db: AsyncSession, grade: str, section: str) -> Optional[Teacher]:
    result = await db.execute(
        select(Teacher).where(
            Teacher.assigned_grade == grade,
            Teacher.assigned_class_name == section,
        )
    )
    return result.scalars().first()


async def list_students(db: AsyncSession) -> List[StudentResponse]:
    result = await db.execute(select(Student).order_by(Student.current_class, Student.student_code))
    return [student_to_response(s) for s in result.scalars().all()]


async def list_students_by_class(db: AsyncSession, grade: str, section: str) -> List[StudentResponse]:
    result = await db.execute(
        select(Student)
        .where(Student.current_class == f"{grade}{section.upper()}")
        .order_by(Student.student_code)
    )
    return [student_to_response(s) for s in result.scalars().all()]


async def search_students(db: AsyncSession, query: str) -> List[StudentResponse]:
    """Case-insensitive substring match on first or last name."""
    term = query.strip().lower()
    if not term:
        raise ValidationError("Search query is required")
    pattern = f"%{term}%"
    result = await db.execute(
        select(Student)
        .join(User, Student.user_id == User.id)
        .where(or_(func.lower(User.first_name).like(pattern), func.lower(User.last_name).like(pattern)))
        .order_by(User.last_name, User.first_name)
    )
    return [student_to_response(s) for s in result.scalars().all()]


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    user = (await db.execute(select(User).where(User.id == payload.user_id))).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if user.role != UserRole.STUDENT.value:
        raise ValidationError("User does not have the student role")
    existing = await db.execute(select(Student.id).where(Student.user_id == user.id))
    if existing.first() is not None:
        raise ConflictError("Student record already exists for this user")

    student = Student(
        user=user,
        student_code=await generate_role_code(db, Student.student_code, UserRole.STUDENT),
        date_of_birth=payload.date_of_birth,
        current_grade=payload.grade,
        current_class=f"{payload.grade}{payload.class_name}",
        teacher=await find_homeroom_teacher(db, payload.grade, payload.class_name),
    )
    db.add(student)
    await db.commit()
    logger.info(f"Created student {student.student_code} in {student.current_class}")
    return student_to_response(student)


async def update_student(db: AsyncSession, student: Student, payload: StudentUpdate) -> StudentResponse:
    data = payload.model_dump(exclude_unset=True)
    if "date_of_birth" in data:
        student.date_of_birth = data.pop("date_of_birth")
    for field, value in data.items():
        setattr(student.user, field, value)
    await db.commit()
    return student_to_response(student)


async def change_student_class(db: AsyncSession, student: Student, payload: ChangeClassRequest) -> StudentResponse:
    """Move to grade + section; the homeroom link follows the new class (None when it has no teacher)."""
    student.current_grade = payload.grade
    student.current_class = f"{payload.grade}{payload.class_name}"
    student.teacher = await find_homeroom_teacher(db, payload.grade, payload.class_name)
    await db.commit()
    logger.info(f"Moved student {student.student_code} to {student.current_class}")
    return student_to_response(student)


async def delete_student(db: AsyncSession, student: Student) -> None:
    """Refused while fee records or gateway transactions reference the student."""
    if await student_has_billing_history(db, student.id):
        raise ConflictError("Student has fee records or payment transactions and cannot be deleted")
    student.parents.clear()
    await db.delete(student)
    await db.commit()
    logger.info(f"Deleted student {student.student_code}")

