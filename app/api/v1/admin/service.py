"""Admin fee-structure maintenance."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import commit_or_conflict
from app.core.exceptions import NotFoundError
from app.core.models import FeeStructure

from .schemas import FeeStructureResponse, FeeStructureUpsert

logger = logging.getLogger(__name__)


async def upsert_fee_structure(db: AsyncSession, payload: FeeStructureUpsert) -> FeeStructureResponse:
    """Create or update the price for (grade, term, academic_year). Existing fee records keep their amount."""
    result = await db.execute(
        select(FeeStructure).where(
            FeeStructure.grade == payload.grade,
            FeeStructure.term == payload.term.value,
            FeeStructure.academic_year == payload.academic_year,
        )
    )
    structure = result.scalar_one_or_none()
    if structure is None:
        structure = FeeStructure(
            grade=payload.grade,
            term=payload.term.value,
            academic_year=payload.academic_year,
            amount=payload.amount,
            is_active=True if payload.is_active is None else payload.is_active,
        )
        db.add(structure)
    else:
        structure.amount = payload.amount
        if payload.is_active is not None:
            structure.is_active = payload.is_active
    await commit_or_conflict(db, "Fee structure was modified concurrently")
    logger.info(
        f"Fee structure {structure.grade} {structure.term} {structure.academic_year} set to {structure.amount}"
    )
    return FeeStructureResponse.model_validate(structure)


async def list_fee_structures(db: AsyncSession) -> List[FeeStructureResponse]:
    result = await db.execute(
        select(FeeStructure).order_by(FeeStructure.academic_year.desc(), FeeStructure.grade, FeeStructure.term)
    )
    return [FeeStructureResponse.model_validate(s) for s in result.scalars().all()]


async def get_class_fee_structure(db: AsyncSession, grade: str, academic_year: str) -> List[FeeStructureResponse]:
    """Active structures for one class and year, Term 1 first."""
    result = await db.execute(
        select(FeeStructure)
        .where(
            FeeStructure.grade == grade.upper(),
            FeeStructure.academic_year == academic_year,
            FeeStructure.is_active.is_(True),
        )
        .order_by(FeeStructure.term)
    )
    return [FeeStructureResponse.model_validate(s) for s in result.scalars().all()]


async def delete_fee_structure(db: AsyncSession, structure_id: UUID) -> None:
    structure = (
        await db.execute(select(FeeStructure).where(FeeStructure.id == structure_id))
    ).scalar_one_or_none()
    if not structure:
        raise NotFoundError("Fee structure not found")
    await db.delete(structure)
    await db.commit()
