"""Report schemas: school statistics, teacher class fees, fee report."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeStatus, PaymentMethod, Term


class Totals(BaseModel):
    total_amount: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")


# --- School statistics ---
class Overview(BaseModel):
    total_students: int
    total_teachers: int
    active_fee_structures: int


class FeeSummary(Totals):
    collection_rate: int
    outstanding_students: int
    fully_paid_students: int


class ClassStats(Totals):
    class_name: str
    student_count: int
    collection_rate: int


class RecentPayment(BaseModel):
    date: datetime
    amount: Decimal
    receipt_number: str
    method: PaymentMethod
    student_id: UUID
    student_name: str


class FeeStructureSummary(BaseModel):
    grade: str
    term: Term
    academic_year: str
    amount: Decimal
    is_active: bool


class SchoolStatistics(BaseModel):
    overview: Overview
    fee_summary: FeeSummary
    class_stats: List[ClassStats]
    recent_payments: List[RecentPayment]
    fee_structures_summary: List[FeeStructureSummary]


# --- Teacher class fees ---
class StudentFeeRow(BaseModel):
    term: Term
    academic_year: str
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: FeeStatus


class StudentFeeTotals(Totals):
    student: str
    student_code: str
    fees: List[StudentFeeRow]


class AssignedClass(BaseModel):
    grade: str
    class_name: str


class TeacherClassFees(BaseModel):
    teacher_id: UUID
    teacher_name: str
    assigned_class: Optional[AssignedClass] = None
    students: List[StudentFeeTotals]
    total_students: int
    class_totals: Totals


# --- Fee report ---
class FeeReportRequest(BaseModel):
    students: List[str] = Field(..., min_length=1, description="Student ids or student codes")
    term: Term
    academic_year: str = Field(..., min_length=4, max_length=9)


class FeeReportRow(BaseModel):
    student: str
    student_code: str
    current_class: str
    fee_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: FeeStatus
    parents: List[str]
    last_payment: Optional[datetime] = None


class FeeReport(Totals):
    term: Term
    academic_year: str
    generated_date: datetime
    total_students: int
    students: List[FeeReportRow]
