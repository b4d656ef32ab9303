import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.models import Parent
from app.core.student_lookup import resolve_student

from .schemas import ChildInfo, ParentResponse

logger = logging.getLogger(__name__)


def parent_to_response(parent: Parent) -> ParentResponse:
    user = parent.user
    return ParentResponse(
        id=parent.id,
        user_id=parent.user_id,
        parent_code=parent.parent_code,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        occupation=parent.occupation,
        children=[
            ChildInfo(
                id=c.id,
                student_code=c.student_code,
                name=c.user.full_name if c.user else "Unknown",
                current_class=c.current_class,
            )
            for c in parent.children
        ],
    )


async def get_parent(db: AsyncSession, parent_id: UUID) -> Parent:
    result = await db.execute(select(Parent).where(Parent.id == parent_id))
    parent = result.scalar_one_or_none()
    if not parent:
        raise NotFoundError("Parent not found")
    return parent


async def link_child(db: AsyncSession, parent: Parent, student_key: str) -> ParentResponse:
    """Linking an already linked child is a no-op."""
    student = await resolve_student(db, student_key)
    if all(c.id != student.id for c in parent.children):
        parent.children.append(student)
        await db.commit()
        logger.info(f"Linked student {student.student_code} to parent {parent.parent_code}")
    return parent_to_response(parent)
