"""Gateway payments router: initiate, status, webhook, cancel, transaction listings."""

import logging
from typing import List, Mapping

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_student_access, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, ok
from app.core.student_lookup import ById, resolve_student
from app.db.session import get_db
from app.integrations.paynow import PaynowGateway, get_payment_gateway

from .schemas import (
    InitiatePaymentRequest,
    PaymentInitiation,
    TransactionResponse,
    TransactionStatusResponse,
    WebhookResult,
)
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "/initiate",
    response_model=ApiResponse[PaymentInitiation],
    status_code=status.HTTP_201_CREATED,
)
async def initiate_payment(
    payload: InitiatePaymentRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaynowGateway = Depends(get_payment_gateway),
    current_user: CurrentUser = Depends(
        require_roles(UserRole.STUDENT, UserRole.PARENT, UserRole.ADMIN, UserRole.RECEPTIONIST)
    ),
):
    try:
        student = await resolve_student(db, payload.student_id)
        await ensure_student_access(
            db, current_user, student, staff_roles=(UserRole.ADMIN, UserRole.RECEPTIONIST)
        )
        data = await service.initiate_payment(db, gateway, student, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(data, message="Payment initiated successfully")


@router.get(
    "/status/{reference}",
    response_model=ApiResponse[TransactionStatusResponse],
    dependencies=[Depends(get_current_user)],
)
async def check_status(
    reference: str,
    db: AsyncSession = Depends(get_db),
    gateway: PaynowGateway = Depends(get_payment_gateway),
):
    try:
        return ok(await service.check_payment_status(db, gateway, reference))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/webhook", response_model=WebhookResult)
async def webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway: PaynowGateway = Depends(get_payment_gateway),
) -> WebhookResult:
    """Gateway result callback. Unauthenticated; the payload is checked by its hash."""
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            body = await request.json()
        else:
            body = await request.form()
    except (ValueError, StarletteHTTPException) as e:
        logger.warning(f"Webhook body could not be parsed: {e}")
        body = None
    if not isinstance(body, Mapping):
        return WebhookResult(success=False, message="Invalid payload")
    fields = {str(k): str(v) for k, v in body.items()}
    return await service.handle_webhook(db, gateway, fields)


@router.get("/return", response_model=MessageResponse)
async def payment_return() -> MessageResponse:
    """Browser lands here after leaving the gateway; the result arrives separately via the webhook."""
    return MessageResponse(message="Payment submitted. Check the transaction status for the result.")


@router.post("/cancel/{reference}", response_model=MessageResponse)
async def cancel(
    reference: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(
        require_roles(UserRole.STUDENT, UserRole.ADMIN, UserRole.RECEPTIONIST)
    ),
) -> MessageResponse:
    try:
        txn = await service.get_transaction(db, reference)
        student = await resolve_student(db, ById(txn.student_id))
        await ensure_student_access(
            db, current_user, student, staff_roles=(UserRole.ADMIN, UserRole.RECEPTIONIST)
        )
        await service.cancel_transaction(db, txn)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Transaction cancelled successfully")


@router.get(
    "/transactions",
    response_model=ApiResponse[List[TransactionResponse]],
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def all_transactions(db: AsyncSession = Depends(get_db)):
    items = await service.list_all_transactions(db)
    return ok(items, count=len(items))


@router.get("/transactions/{student}", response_model=ApiResponse[List[TransactionResponse]])
async def student_transactions(
    student: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(
        require_roles(
            UserRole.STUDENT, UserRole.PARENT, UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST
        )
    ),
):
    try:
        record = await resolve_student(db, student)
        await ensure_student_access(db, current_user, record)
        items = await service.list_student_transactions(db, record)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(items, count=len(items))
