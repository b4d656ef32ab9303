"""Fees router: fee records, manual payments, statements and ledger listings."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_student_access, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, ok
from app.core.student_lookup import resolve_student
from app.db.session import get_db

from .schemas import (
    FeeCreate,
    FeeResponse,
    FeeStatement,
    FeeStatusResponse,
    FeeUpdate,
    LedgerEntry,
    PaymentReceipt,
    ProcessPaymentRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Manual payments and ledger ---
@router.post(
    "/payment",
    response_model=ApiResponse[PaymentReceipt],
    status_code=status.HTTP_201_CREATED,
)
async def process_payment(
    payload: ProcessPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST)),
):
    try:
        receipt = await service.process_payment(db, payload, received_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(receipt, message="Payment processed successfully")


@router.get(
    "/payments",
    response_model=ApiResponse[List[LedgerEntry]],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST))],
)
async def list_all_payments(db: AsyncSession = Depends(get_db)):
    items = await service.list_all_payments(db)
    return ok(items, count=len(items))


@router.get("/statement/{student}", response_model=ApiResponse[FeeStatement])
async def student_fee_statement(
    student: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Statement for one student, addressed by id or student code."""
    try:
        record = await resolve_student(db, student)
        await ensure_student_access(db, current_user, record)
        return ok(await service.get_student_fee_statement(db, record))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/status/{student}",
    response_model=ApiResponse[FeeStatusResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST))],
)
async def student_fee_status(student: str, db: AsyncSession = Depends(get_db)):
    try:
        record = await resolve_student(db, student)
        return ok(await service.get_student_fee_status(db, record))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee records ---
@router.get(
    "",
    response_model=ApiResponse[List[FeeResponse]],
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def list_fees(db: AsyncSession = Depends(get_db)):
    items = await service.list_fees(db)
    return ok(items, count=len(items))


@router.post(
    "",
    response_model=ApiResponse[FeeResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def create_fee(payload: FeeCreate, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.create_fee(db, payload), message="Fee record created")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{fee_id}",
    response_model=ApiResponse[FeeResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST))],
)
async def get_fee(fee_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.get_fee(db, fee_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{fee_id}",
    response_model=ApiResponse[FeeResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def update_fee(fee_id: UUID, payload: FeeUpdate, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.update_fee(db, fee_id, payload), message="Fee record updated")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{fee_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def delete_fee(fee_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await service.delete_fee(db, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Fee record deleted")
