import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import UserRole
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.identifiers import generate_role_code
from app.core.models import Student, Teacher

from .schemas import AssignClassRequest, AssignedClassInfo, TeacherCreate, TeacherResponse, TeacherUpdate

logger = logging.getLogger(__name__)


def teacher_to_response(teacher: Teacher) -> TeacherResponse:
    user = teacher.user
    assigned = teacher.assigned_class
    return TeacherResponse(
        id=teacher.id,
        user_id=teacher.user_id,
        teacher_code=teacher.teacher_code,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        assigned_class=AssignedClassInfo(**assigned) if assigned else None,
        created_at=teacher.created_at,
    )


async def get_teacher(db: AsyncSession, teacher_id: UUID) -> Teacher:
    result = await db.execute(select(Teacher).where(Teacher.id == teacher_id))
    teacher = result.scalar_one_or_none()
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher


async def list_teachers(db: AsyncSession) -> List[TeacherResponse]:
    result = await db.execute(select(Teacher).order_by(Teacher.teacher_code))
    return [teacher_to_response(t) for t in result.scalars().all()]


async def create_teacher(db: AsyncSession, payload: TeacherCreate) -> TeacherResponse:
    user = (await db.execute(select(User).where(User.id == payload.user_id))).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if user.role != UserRole.TEACHER.value:
        raise ValidationError("User does not have the teacher role")
    existing = await db.execute(select(Teacher.id).where(Teacher.user_id == user.id))
    if existing.first() is not None:
        raise ConflictError("Teacher record already exists for this user")

    teacher = Teacher(
        user=user,
        teacher_code=await generate_role_code(db, Teacher.teacher_code, UserRole.TEACHER),
    )
    db.add(teacher)
    await db.commit()
    logger.info(f"Created teacher {teacher.teacher_code}")
    return teacher_to_response(teacher)


async def update_teacher(db: AsyncSession, teacher: Teacher, payload: TeacherUpdate) -> TeacherResponse:
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(teacher.user, field, value)
    await db.commit()
    return teacher_to_response(teacher)


async def _students_of(db: AsyncSession, teacher_id: UUID) -> List[Student]:
    result = await db.execute(select(Student).where(Student.teacher_id == teacher_id))
    return list(result.scalars().all())


async def delete_teacher(db: AsyncSession, teacher: Teacher) -> None:
    """Students keep their class; only their homeroom link is cleared."""
    for student in await _students_of(db, teacher.id):
        student.teacher = None
    await db.delete(teacher)
    await db.commit()
    logger.info(f"Deleted teacher {teacher.teacher_code}")


async def assign_teacher_to_class(db: AsyncSession, payload: AssignClassRequest) -> TeacherResponse:
    """
    One teacher per class: whoever held (grade, section) loses it, the teacher takes it,
    and every student currently in that class is linked to the teacher.
    """
    teacher = await get_teacher(db, payload.teacher_id)

    holders = await db.execute(
        select(Teacher).where(
            Teacher.assigned_grade == payload.grade,
            Teacher.assigned_class_name == payload.class_name,
            Teacher.id != teacher.id,
        )
    )
    for other in holders.scalars().all():
        other.assigned_grade = None
        other.assigned_class_name = None

    teacher.assigned_grade = payload.grade
    teacher.assigned_class_name = payload.class_name

    students = await db.execute(
        select(Student).where(Student.current_class == f"{payload.grade}{payload.class_name}")
    )
    for student in students.scalars().all():
        student.teacher = teacher

    await db.commit()
    logger.info(f"Assigned teacher {teacher.teacher_code} to class {payload.grade}{payload.class_name}")
    return teacher_to_response(teacher)
