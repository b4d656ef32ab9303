"""Fees schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import MANUAL_PAYMENT_METHODS, FeeStatus, PaymentMethod, Term


# --- Ledger ---
class FeePaymentResponse(BaseModel):
    amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod
    received_by: Optional[UUID] = None
    receipt_number: str
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# --- Fee records ---
class FeeCreate(BaseModel):
    student: str = Field(..., description="Student id or student code")
    term: Term
    academic_year: str = Field(..., min_length=4, max_length=9)
    total_amount: Decimal = Field(..., gt=0)
    due_date: Optional[datetime] = None


class FeeUpdate(BaseModel):
    total_amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[datetime] = None


class FeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_code: Optional[str] = None
    student_name: Optional[str] = None
    term: Term
    academic_year: str
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: FeeStatus
    due_date: datetime
    version: int
    payments: List[FeePaymentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# --- Manual payment ---
class ProcessPaymentRequest(BaseModel):
    student_id: str = Field(..., description="Student id or student code")
    amount: Decimal = Field(..., gt=0)
    term: Term
    academic_year: str = Field(..., min_length=4, max_length=9)
    payment_method: PaymentMethod = PaymentMethod.CASH

    @field_validator("payment_method")
    @classmethod
    def manual_methods_only(cls, v: PaymentMethod) -> PaymentMethod:
        if v not in MANUAL_PAYMENT_METHODS:
            raise ValueError("payment_method must be cash, bank-transfer or mobile-money")
        return v


class PaymentReceipt(BaseModel):
    receipt_number: str
    amount: Decimal
    new_balance: Decimal
    status: FeeStatus
    student_id: UUID
    student_code: str
    student_name: str
    term: Term
    academic_year: str


# --- Statement / status ---
class LastPayment(BaseModel):
    date: datetime
    amount: Decimal
    receipt_number: str


class FeeRecordSummary(BaseModel):
    term: Term
    academic_year: str
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: FeeStatus
    due_date: datetime
    payments: int
    last_payment: Optional[LastPayment] = None


class StatementStudent(BaseModel):
    id: UUID
    name: str
    student_code: str
    current_class: str
    teacher: str


class StatementSummary(BaseModel):
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    paid_percentage: int


class CurrentTermInfo(BaseModel):
    term: Term
    academic_year: str
    amount_due: Decimal
    due_date: datetime


class FeeStatement(BaseModel):
    student: StatementStudent
    summary: StatementSummary
    current_term_info: Optional[CurrentTermInfo] = None
    fee_records: List[FeeRecordSummary]


class FeeStatusResponse(BaseModel):
    total_balance: Decimal
    total_paid: Decimal
    fee_records: List[FeeRecordSummary]


class LedgerEntry(BaseModel):
    """One ledger entry flattened out of its fee, for payment listings."""

    student_id: UUID
    student_code: Optional[str] = None
    student_name: str
    amount: Decimal
    payment_method: PaymentMethod
    receipt_number: str
    payment_date: datetime
    received_by: Optional[UUID] = None
