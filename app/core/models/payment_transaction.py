"""Gateway payment attempt: one row per session created with the payment provider. Never deleted."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID

from app.core.enums import TransactionStatus
from app.db.session import Base


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("ix_payment_transactions_student_status", "student_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    fee_id = Column(UUID(as_uuid=True), ForeignKey("fees.id", ondelete="SET NULL"), nullable=True)
    # Caller-generated, correlates this row with the gateway session
    reference = Column(String(100), nullable=False, unique=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    term = Column(String(10), nullable=False)
    academic_year = Column(String(9), nullable=False)
    redirect_url = Column(String(500), nullable=True)
    poll_url = Column(String(500), nullable=True)
    # pending, paid, cancelled, failed, awaiting_delivery, delivered
    status = Column(String(20), nullable=False, default=TransactionStatus.pending.value)
    gateway_reference = Column(String(100), nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    # Denormalized so the audit trail survives student edits
    student_email = Column(String(255), nullable=False)
    student_name = Column(String(255), nullable=False)
    student_code = Column(String(20), nullable=False)
    gateway_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
