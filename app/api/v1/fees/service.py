"""Fees service: fee records, manual payments, statements. Balance/status always go through Fee.recalculate."""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.enums import Term
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.fee_calculator import as_utc, collection_rate, to_decimal
from app.core.identifiers import generate_receipt_number
from app.core.models import Fee, FeeStructure, PaymentTransaction, Student
from app.core.student_lookup import resolve_student

from .schemas import (
    CurrentTermInfo,
    FeeCreate,
    FeePaymentResponse,
    FeeRecordSummary,
    FeeResponse,
    FeeStatement,
    FeeStatusResponse,
    FeeUpdate,
    LastPayment,
    LedgerEntry,
    PaymentReceipt,
    ProcessPaymentRequest,
    StatementStudent,
    StatementSummary,
)

logger = logging.getLogger(__name__)

FEE_NOT_FOUND = "Fee record not found"


def _student_name(student: Optional[Student]) -> str:
    if student is None or student.user is None:
        return "Unknown"
    return student.user.full_name


def default_due_date(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(days=settings.fee_due_days)


def current_term(now: Optional[datetime] = None) -> Term:
    """Jan-Apr is Term 1, May-Aug Term 2, Sep-Dec Term 3."""
    month = (now or datetime.now(timezone.utc)).month
    if month <= 4:
        return Term.TERM_1
    if month <= 8:
        return Term.TERM_2
    return Term.TERM_3


async def commit_or_conflict(db: AsyncSession, message: str = "Fee record was modified concurrently") -> None:
    """Commit; unique-key races and stale Fee versions come back as ConflictError."""
    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConflictError(message) from e
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("A fee record already exists for this student, term and academic year") from e


# --- Lookups ---
async def find_fee(db: AsyncSession, student_id: UUID, term: str, academic_year: str) -> Optional[Fee]:
    result = await db.execute(
        select(Fee).where(
            Fee.student_id == student_id,
            Fee.term == term,
            Fee.academic_year == academic_year,
        )
    )
    return result.scalar_one_or_none()


async def find_active_structure(
    db: AsyncSession, class_name: str, term: str, academic_year: str
) -> Optional[FeeStructure]:
    result = await db.execute(
        select(FeeStructure).where(
            FeeStructure.grade == class_name,
            FeeStructure.term == term,
            FeeStructure.academic_year == academic_year,
            FeeStructure.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


def build_fee(
    student: Student,
    term: str,
    academic_year: str,
    total_amount: Decimal,
    due_date: Optional[datetime] = None,
) -> Fee:
    fee = Fee(
        student=student,
        student_id=student.id,
        term=term,
        academic_year=academic_year,
        total_amount=to_decimal(total_amount),
        paid_amount=Decimal("0"),
        due_date=due_date or default_due_date(),
    )
    fee.recalculate()
    return fee


async def find_or_build_fee(
    db: AsyncSession,
    student: Student,
    term: str,
    academic_year: str,
    total_amount: Optional[Decimal] = None,
) -> Tuple[Fee, bool]:
    """
    Existing fee for (student, term, year), or a new unsaved one.
    total_amount None means price it from the active fee structure of the student's current class.
    Returns (fee, created); the caller adds a created fee to the session.
    """
    fee = await find_fee(db, student.id, term, academic_year)
    if fee is not None:
        return fee, False
    if total_amount is None:
        structure = await find_active_structure(db, student.current_class, term, academic_year)
        if structure is None:
            raise NotFoundError(
                f"Fee structure not found for {student.current_class}, {term} {academic_year}"
            )
        total_amount = structure.amount
    return build_fee(student, term, academic_year, total_amount), True


async def _load_fee(db: AsyncSession, fee_id: UUID) -> Fee:
    result = await db.execute(
        select(Fee).where(Fee.id == fee_id).execution_options(populate_existing=True)
    )
    fee = result.scalar_one_or_none()
    if not fee:
        raise NotFoundError(FEE_NOT_FOUND)
    return fee


# --- Response shaping ---
def fee_to_response(fee: Fee) -> FeeResponse:
    student = fee.student
    return FeeResponse(
        id=fee.id,
        student_id=fee.student_id,
        student_code=student.student_code if student else None,
        student_name=_student_name(student) if student else None,
        term=fee.term,
        academic_year=fee.academic_year,
        total_amount=to_decimal(fee.total_amount),
        paid_amount=to_decimal(fee.paid_amount),
        balance=to_decimal(fee.balance),
        status=fee.status,
        due_date=fee.due_date,
        version=fee.version,
        payments=[FeePaymentResponse.model_validate(p) for p in fee.payments],
        created_at=fee.created_at,
        updated_at=fee.updated_at,
    )


def fee_record_summary(fee: Fee) -> FeeRecordSummary:
    last = fee.last_payment
    return FeeRecordSummary(
        term=fee.term,
        academic_year=fee.academic_year,
        total_amount=to_decimal(fee.total_amount),
        paid_amount=to_decimal(fee.paid_amount),
        balance=to_decimal(fee.balance),
        status=fee.status,
        due_date=fee.due_date,
        payments=len(fee.payments),
        last_payment=LastPayment(
            date=last.payment_date, amount=to_decimal(last.amount), receipt_number=last.receipt_number
        )
        if last
        else None,
    )


def flatten_payments(fees: List[Fee]) -> List[LedgerEntry]:
    """Every ledger entry of the given fees, newest payment first."""
    entries = []
    for fee in fees:
        for p in fee.payments:
            entries.append(
                LedgerEntry(
                    student_id=fee.student_id,
                    student_code=fee.student.student_code if fee.student else None,
                    student_name=_student_name(fee.student),
                    amount=to_decimal(p.amount),
                    payment_method=p.payment_method,
                    receipt_number=p.receipt_number,
                    payment_date=as_utc(p.payment_date),
                    received_by=p.received_by,
                )
            )
    entries.sort(key=lambda e: e.payment_date, reverse=True)
    return entries


# --- Fee CRUD ---
async def list_fees(db: AsyncSession) -> List[FeeResponse]:
    result = await db.execute(select(Fee).order_by(Fee.created_at.desc()))
    return [fee_to_response(f) for f in result.scalars().all()]


async def get_fee(db: AsyncSession, fee_id: UUID) -> FeeResponse:
    return fee_to_response(await _load_fee(db, fee_id))


async def create_fee(db: AsyncSession, payload: FeeCreate) -> FeeResponse:
    student = await resolve_student(db, payload.student)
    if await find_fee(db, student.id, payload.term.value, payload.academic_year) is not None:
        raise ConflictError("A fee record already exists for this student, term and academic year")
    fee = build_fee(student, payload.term.value, payload.academic_year, payload.total_amount, payload.due_date)
    db.add(fee)
    await commit_or_conflict(db)
    logger.info(f"Created fee {fee.id} for {student.student_code} {fee.term} {fee.academic_year}")
    return fee_to_response(fee)


async def update_fee(db: AsyncSession, fee_id: UUID, payload: FeeUpdate) -> FeeResponse:
    fee = await _load_fee(db, fee_id)
    if payload.total_amount is not None:
        fee.total_amount = payload.total_amount
    if payload.due_date is not None:
        fee.due_date = payload.due_date
    fee.recalculate()
    await commit_or_conflict(db)
    return fee_to_response(fee)


async def delete_fee(db: AsyncSession, fee_id: UUID) -> None:
    fee = await _load_fee(db, fee_id)
    await db.delete(fee)
    await db.commit()


# --- Manual payment ---
async def process_payment(
    db: AsyncSession,
    payload: ProcessPaymentRequest,
    received_by: Optional[UUID] = None,
) -> PaymentReceipt:
    """
    Apply a cash/manual payment. Creates the fee from the fee structure when missing.
    Rejects amount > balance; paying the exact balance is allowed. No idempotency key:
    two identical calls record two payments.
    """
    student = await resolve_student(db, payload.student_id)
    term = payload.term.value
    fee, created = await find_or_build_fee(db, student, term, payload.academic_year)

    balance = to_decimal(fee.balance)
    if payload.amount > balance:
        raise ValidationError(f"Payment amount ({payload.amount}) exceeds outstanding balance ({balance})")

    if created:
        db.add(fee)
    receipt_number = generate_receipt_number()
    fee.add_payment(
        payload.amount,
        payload.payment_method.value,
        receipt_number,
        received_by=received_by,
    )
    await commit_or_conflict(db)
    logger.info(
        f"Recorded {payload.payment_method.value} payment {receipt_number} of {payload.amount} "
        f"for {student.student_code} {term} {payload.academic_year}"
    )

    return PaymentReceipt(
        receipt_number=receipt_number,
        amount=payload.amount,
        new_balance=to_decimal(fee.balance),
        status=fee.status,
        student_id=student.id,
        student_code=student.student_code,
        student_name=_student_name(student),
        term=term,
        academic_year=payload.academic_year,
    )


# --- Statements ---
async def _student_fees(db: AsyncSession, student_id: UUID) -> List[Fee]:
    result = await db.execute(
        select(Fee)
        .where(Fee.student_id == student_id)
        .order_by(Fee.academic_year.desc(), Fee.term)
    )
    return list(result.scalars().all())


async def get_student_fee_statement(db: AsyncSession, student: Student) -> FeeStatement:
    fees = await _student_fees(db, student.id)
    total_amount = sum((to_decimal(f.total_amount) for f in fees), Decimal("0"))
    total_paid = sum((to_decimal(f.paid_amount) for f in fees), Decimal("0"))
    total_balance = sum((to_decimal(f.balance) for f in fees), Decimal("0"))

    now = datetime.now(timezone.utc)
    term = current_term(now)
    year = str(now.year)
    structure = await find_active_structure(db, student.current_class, term.value, year)
    current_term_info = None
    if structure is not None:
        current_term_info = CurrentTermInfo(
            term=term,
            academic_year=year,
            amount_due=to_decimal(structure.amount),
            due_date=default_due_date(now),
        )

    teacher = student.teacher
    return FeeStatement(
        student=StatementStudent(
            id=student.id,
            name=_student_name(student),
            student_code=student.student_code,
            current_class=student.current_class,
            teacher=teacher.user.full_name if teacher and teacher.user else "Not assigned",
        ),
        summary=StatementSummary(
            total_amount=total_amount,
            total_paid=total_paid,
            total_balance=total_balance,
            paid_percentage=collection_rate(total_amount, total_paid),
        ),
        current_term_info=current_term_info,
        fee_records=[fee_record_summary(f) for f in fees],
    )


async def get_student_fee_status(db: AsyncSession, student: Student) -> FeeStatusResponse:
    fees = await _student_fees(db, student.id)
    return FeeStatusResponse(
        total_balance=sum((to_decimal(f.balance) for f in fees), Decimal("0")),
        total_paid=sum((to_decimal(f.paid_amount) for f in fees), Decimal("0")),
        fee_records=[fee_record_summary(f) for f in fees],
    )


async def list_all_payments(db: AsyncSession) -> List[LedgerEntry]:
    result = await db.execute(select(Fee))
    return flatten_payments(list(result.scalars().all()))


async def student_has_billing_history(db: AsyncSession, student_id: UUID) -> bool:
    fee = await db.execute(select(Fee.id).where(Fee.student_id == student_id).limit(1))
    if fee.first() is not None:
        return True
    txn = await db.execute(
        select(PaymentTransaction.id).where(PaymentTransaction.student_id == student_id).limit(1)
    )
    return txn.first() is not None
