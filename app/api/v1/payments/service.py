"""
Gateway payments: session initiation, status reconciliation, webhook, cancel, listings.

Both reconciliation paths (poll and webhook) append the gateway ledger entry through
_apply_gateway_payment, and only on a transition into paid. A fee that already holds
the transaction reference or the gateway reference as a receipt is also skipped, so a
payment observed twice is recorded once.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import commit_or_conflict, find_or_build_fee
from app.core.enums import PaymentMethod, TransactionStatus
from app.core.exceptions import NotFoundError, ServiceError, ValidationError
from app.core.fee_calculator import to_decimal
from app.core.identifiers import generate_payment_reference
from app.core.models import Fee, PaymentTransaction, Student
from app.integrations.paynow import PaynowGateway

from .schemas import (
    FeeDetails,
    InitiatePaymentRequest,
    PayerSummary,
    PaymentInitiation,
    TransactionResponse,
    TransactionStatusResponse,
    WebhookResult,
)

logger = logging.getLogger(__name__)

TRANSACTION_NOT_FOUND = "Transaction not found"

# Gateway wording -> stored status
_GATEWAY_STATUSES = {
    "paid": TransactionStatus.paid,
    "cancelled": TransactionStatus.cancelled,
    "failed": TransactionStatus.failed,
    "awaiting delivery": TransactionStatus.awaiting_delivery,
    "awaiting_delivery": TransactionStatus.awaiting_delivery,
    "delivered": TransactionStatus.delivered,
    "pending": TransactionStatus.pending,
}


def normalize_gateway_status(raw: Optional[str]) -> TransactionStatus:
    """Map a gateway status string onto TransactionStatus; anything unrecognised stays pending."""
    key = (raw or "").strip().lower()
    return _GATEWAY_STATUSES.get(key, TransactionStatus.pending)


def _poll_status(raw: str, paid: bool) -> TransactionStatus:
    if paid:
        return TransactionStatus.paid
    status = normalize_gateway_status(raw)
    if status in (TransactionStatus.cancelled, TransactionStatus.failed):
        return status
    return TransactionStatus.pending


async def _unique_reference(db: AsyncSession, student_code: str) -> str:
    now = datetime.now(timezone.utc)
    while True:
        reference = generate_payment_reference(student_code, now)
        taken = await db.execute(
            select(PaymentTransaction.id).where(PaymentTransaction.reference == reference)
        )
        if taken.first() is None:
            return reference
        now += timedelta(milliseconds=1)


async def get_transaction(db: AsyncSession, reference: str) -> PaymentTransaction:
    result = await db.execute(
        select(PaymentTransaction).where(PaymentTransaction.reference == reference)
    )
    txn = result.scalar_one_or_none()
    if not txn:
        raise NotFoundError(TRANSACTION_NOT_FOUND)
    return txn


async def _apply_gateway_payment(db: AsyncSession, txn: PaymentTransaction, previous: str) -> bool:
    """Append the gateway ledger entry for a paid transaction. Returns True when an entry was added."""
    if previous == TransactionStatus.paid.value:
        logger.info(f"Transaction {txn.reference} was already paid, ledger unchanged")
        return False
    if txn.fee_id is None:
        logger.warning(f"Transaction {txn.reference} is paid but has no fee record")
        return False
    result = await db.execute(
        select(Fee).where(Fee.id == txn.fee_id).execution_options(populate_existing=True)
    )
    fee = result.scalar_one_or_none()
    if fee is None:
        logger.warning(f"Fee {txn.fee_id} for transaction {txn.reference} no longer exists")
        return False
    receipt = txn.gateway_reference or txn.reference
    for seen in {txn.reference, receipt}:
        if fee.has_receipt(seen):
            logger.warning(f"Receipt {seen} already recorded on fee {fee.id}, skipping")
            return False
    fee.add_payment(
        txn.amount,
        PaymentMethod.GATEWAY.value,
        receipt,
        notes=f"Paid via Paynow - Reference: {receipt}",
        payment_date=txn.payment_date,
    )
    logger.info(f"Recorded gateway payment {receipt} of {txn.amount} on fee {fee.id}")
    return True


def _set_status(txn: PaymentTransaction, status: TransactionStatus) -> None:
    if txn.status != status.value:
        logger.info(f"Transaction {txn.reference}: {txn.status} -> {status.value}")
    txn.status = status.value


# --- Initiate ---
async def initiate_payment(
    db: AsyncSession,
    gateway: PaynowGateway,
    student: Student,
    payload: InitiatePaymentRequest,
) -> PaymentInitiation:
    """
    Open a gateway session for a student's fee. A missing fee record is created with
    total = the requested amount and committed before the gateway is called; it is kept
    even when the gateway call fails.
    """
    try:
        if student.user is None:
            raise NotFoundError("Student not found")
        term = payload.term.value
        fee, created = await find_or_build_fee(
            db, student, term, payload.academic_year, total_amount=payload.amount
        )
        if created:
            db.add(fee)
            await commit_or_conflict(db)

        name = student.user.full_name
        email = student.user.email
        reference = await _unique_reference(db, student.student_code)
        session = await gateway.create_payment_session(
            reference,
            f"School fees {term} {payload.academic_year} - {name}",
            payload.amount,
            email,
        )

        txn = PaymentTransaction(
            student_id=student.id,
            fee_id=fee.id,
            reference=reference,
            amount=payload.amount,
            term=term,
            academic_year=payload.academic_year,
            redirect_url=session.redirect_url,
            poll_url=session.poll_url,
            status=TransactionStatus.pending.value,
            student_email=email,
            student_name=name,
            student_code=student.student_code,
            gateway_metadata={"instructions": session.instructions} if session.instructions else {},
        )
        db.add(txn)
        await db.commit()
    except ServiceError as e:
        raise ServiceError(f"Payment initiation failed: {e.message}", e.status_code) from e

    logger.info(f"Initiated gateway payment {reference} of {payload.amount} for {student.student_code}")
    return PaymentInitiation(
        transaction_id=txn.id,
        reference=reference,
        redirect_url=session.redirect_url,
        poll_url=session.poll_url,
        instructions=session.instructions,
        amount=payload.amount,
        student=PayerSummary(name=name, student_code=student.student_code, email=email),
        fee_details=FeeDetails(
            fee_id=fee.id, term=term, academic_year=payload.academic_year, amount=payload.amount
        ),
    )


# --- Reconciliation ---
async def check_payment_status(
    db: AsyncSession, gateway: PaynowGateway, reference: str
) -> TransactionStatusResponse:
    txn = await get_transaction(db, reference)
    if not txn.poll_url:
        raise ValidationError("Poll URL not available for this transaction")

    result = await gateway.poll_status(txn.poll_url)
    status = _poll_status(result.status, result.paid)
    previous = txn.status
    fee_updated = False
    if status == TransactionStatus.paid:
        txn.gateway_reference = result.gateway_reference or txn.gateway_reference
        txn.payment_method = result.method or txn.payment_method
        txn.payment_date = txn.payment_date or datetime.now(timezone.utc)
        fee_updated = await _apply_gateway_payment(db, txn, previous)
    _set_status(txn, status)
    await commit_or_conflict(db)

    return TransactionStatusResponse(
        reference=txn.reference,
        status=txn.status,
        amount=to_decimal(txn.amount),
        student_code=txn.student_code,
        student_name=txn.student_name,
        gateway_reference=txn.gateway_reference,
        payment_method=txn.payment_method,
        payment_date=txn.payment_date,
        fee_updated=fee_updated,
    )


async def handle_webhook(
    db: AsyncSession, gateway: PaynowGateway, fields: Mapping[str, str]
) -> WebhookResult:
    """Result-URL callback. Never raises for bad input: failures come back as success=False."""
    reference = fields.get("reference")
    if not reference:
        logger.warning("Webhook received without a reference")
        return WebhookResult(success=False, message="Missing reference")

    result = await db.execute(
        select(PaymentTransaction).where(PaymentTransaction.reference == reference)
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        logger.warning(f"Webhook received for unknown transaction: {reference}")
        return WebhookResult(success=False, message=TRANSACTION_NOT_FOUND, reference=reference)

    if not gateway.verify_hash(fields):
        logger.warning(f"Webhook hash mismatch for transaction {reference}")
        return WebhookResult(success=False, message="Invalid hash", reference=reference)

    status = normalize_gateway_status(fields.get("status"))
    previous = txn.status
    txn.gateway_reference = fields.get("paynowreference") or txn.gateway_reference
    txn.payment_method = fields.get("method") or txn.payment_method
    if status == TransactionStatus.paid:
        txn.payment_date = txn.payment_date or datetime.now(timezone.utc)
        await _apply_gateway_payment(db, txn, previous)
    _set_status(txn, status)
    try:
        await commit_or_conflict(db)
    except ServiceError as e:
        logger.error(f"Webhook for transaction {reference} could not be saved: {e.message}")
        return WebhookResult(success=False, message=e.message, reference=reference)

    logger.info(f"Webhook processed for transaction {reference}, status: {status.value}")
    return WebhookResult(
        success=True,
        message="Webhook processed successfully",
        reference=reference,
        status=status.value,
    )


# --- Cancel / listings ---
async def cancel_transaction(db: AsyncSession, txn: PaymentTransaction) -> None:
    if txn.status != TransactionStatus.pending.value:
        raise ValidationError(f"Cannot cancel transaction with status: {txn.status}")
    _set_status(txn, TransactionStatus.cancelled)
    await db.commit()
    logger.info(f"Cancelled transaction {txn.reference}")


async def list_student_transactions(db: AsyncSession, student: Student) -> List[TransactionResponse]:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.student_id == student.id)
        .order_by(PaymentTransaction.created_at.desc())
    )
    return [TransactionResponse.model_validate(t) for t in result.scalars().all()]


async def list_all_transactions(db: AsyncSession) -> List[TransactionResponse]:
    result = await db.execute(
        select(PaymentTransaction).order_by(PaymentTransaction.created_at.desc())
    )
    return [TransactionResponse.model_validate(t) for t in result.scalars().all()]
