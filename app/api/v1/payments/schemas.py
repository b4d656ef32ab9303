"""Gateway payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import Term, TransactionStatus


class InitiatePaymentRequest(BaseModel):
    student_id: str = Field(..., description="Student id or student code")
    term: Term
    academic_year: str = Field(..., min_length=4, max_length=9)
    amount: Decimal = Field(..., gt=0)


class PayerSummary(BaseModel):
    name: str
    student_code: str
    email: str


class FeeDetails(BaseModel):
    fee_id: UUID
    term: Term
    academic_year: str
    amount: Decimal


class PaymentInitiation(BaseModel):
    transaction_id: UUID
    reference: str
    redirect_url: Optional[str] = None
    poll_url: Optional[str] = None
    instructions: Optional[str] = None
    amount: Decimal
    student: PayerSummary
    fee_details: FeeDetails


class TransactionStatusResponse(BaseModel):
    reference: str
    status: TransactionStatus
    amount: Decimal
    student_code: str
    student_name: str
    gateway_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    fee_updated: bool = False


class TransactionResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_id: Optional[UUID] = None
    reference: str
    amount: Decimal
    term: Term
    academic_year: str
    redirect_url: Optional[str] = None
    poll_url: Optional[str] = None
    status: TransactionStatus
    gateway_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    student_email: str
    student_name: str
    student_code: str
    gateway_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WebhookResult(BaseModel):
    """Always returned with HTTP 200 so the gateway stops retrying."""

    success: bool
    message: str
    reference: Optional[str] = None
    status: Optional[str] = None
