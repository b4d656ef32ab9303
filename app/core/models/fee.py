"""
Fee record for one student, term and academic year, with its payment ledger.

balance and status are recomputed before every flush (see _recalculate_fees_before_flush),
so a persisted Fee always satisfies balance == total_amount - paid_amount.
version guards against lost updates: a write based on a stale read raises StaleDataError.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Session, relationship

from app.core.enums import FeeStatus
from app.core.fee_calculator import compute_fee_state, to_decimal
from app.db.session import Base


class Fee(Base):
    __tablename__ = "fees"
    __table_args__ = (
        UniqueConstraint("student_id", "term", "academic_year", name="uq_fee_student_term_year"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    term = Column(String(10), nullable=False)
    academic_year = Column(String(9), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=FeeStatus.pending.value)  # pending, partial, paid, overdue
    due_date = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", lazy="selectin")
    payments = relationship(
        "FeePayment",
        order_by="FeePayment.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def recalculate(self, now: Optional[datetime] = None) -> None:
        balance, status = compute_fee_state(self.total_amount, self.paid_amount, self.due_date, now=now)
        self.balance = balance
        self.status = status.value

    def has_receipt(self, receipt_number: Optional[str]) -> bool:
        if not receipt_number:
            return False
        return any(p.receipt_number == receipt_number for p in self.payments)

    def add_payment(
        self,
        amount: Decimal,
        payment_method: str,
        receipt_number: str,
        received_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        payment_date: Optional[datetime] = None,
    ) -> "FeePayment":
        payment = FeePayment(
            amount=to_decimal(amount),
            payment_method=payment_method,
            receipt_number=receipt_number,
            received_by=received_by,
            notes=notes,
            payment_date=payment_date or datetime.now(timezone.utc),
        )
        self.payments.append(payment)
        self.paid_amount = to_decimal(self.paid_amount) + to_decimal(amount)
        self.recalculate()
        return payment

    @property
    def last_payment(self) -> Optional["FeePayment"]:
        return self.payments[-1] if self.payments else None


class FeePayment(Base):
    """Ledger entry owned by a Fee. Append-only; position keeps insertion order."""

    __tablename__ = "fee_payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    fee_id = Column(UUID(as_uuid=True), ForeignKey("fees.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_method = Column(String(20), nullable=False)  # cash, bank-transfer, mobile-money, gateway
    received_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    receipt_number = Column(String(100), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


@event.listens_for(Session, "before_flush")
def _recalculate_fees_before_flush(session, flush_context, instances) -> None:
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Fee):
            obj.recalculate()
