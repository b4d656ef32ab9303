"""Admin router: fee structures, school statistics, users, fee report."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.reports import service as reports_service
from app.api.v1.reports.schemas import FeeReport, FeeReportRequest, SchoolStatistics
from app.auth.rbac import require_roles
from app.auth.schemas import UserDetail
from app.auth.services import list_users
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, ok
from app.db.session import get_db

from .schemas import FeeStructureResponse, FeeStructureUpsert
from . import service

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])

_admin = require_roles(UserRole.ADMIN)


@router.get("/statistics", response_model=ApiResponse[SchoolStatistics], dependencies=[Depends(_admin)])
async def school_statistics(db: AsyncSession = Depends(get_db)):
    return ok(await reports_service.get_school_statistics(db))


@router.get("/users", response_model=ApiResponse[List[UserDetail]], dependencies=[Depends(_admin)])
async def users(db: AsyncSession = Depends(get_db)):
    items = await list_users(db)
    return ok(items, count=len(items))


@router.post("/fee-report", response_model=ApiResponse[FeeReport], dependencies=[Depends(_admin)])
async def fee_report(payload: FeeReportRequest, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await reports_service.generate_fee_report(db, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee structures ---
@router.put(
    "/fee-structures",
    response_model=ApiResponse[FeeStructureResponse],
    dependencies=[Depends(_admin)],
)
async def upsert_fee_structure(payload: FeeStructureUpsert, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.upsert_fee_structure(db, payload), message="Fee structure saved")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/fee-structures",
    response_model=ApiResponse[List[FeeStructureResponse]],
    dependencies=[Depends(_admin)],
)
async def list_fee_structures(db: AsyncSession = Depends(get_db)):
    items = await service.list_fee_structures(db)
    return ok(items, count=len(items))


@router.get(
    "/fee-structures/{grade}/{academic_year}",
    response_model=ApiResponse[List[FeeStructureResponse]],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER))],
)
async def class_fee_structure(grade: str, academic_year: str, db: AsyncSession = Depends(get_db)):
    items = await service.get_class_fee_structure(db, grade, academic_year)
    return ok(items, count=len(items))


@router.delete(
    "/fee-structures/{structure_id}",
    response_model=MessageResponse,
    dependencies=[Depends(_admin)],
)
async def delete_fee_structure(structure_id: UUID, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    try:
        await service.delete_fee_structure(db, structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Fee structure deleted")
