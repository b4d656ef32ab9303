"""
Fee rollups. Every figure is computed by scanning Fee rows at query time; nothing is cached.
Per-class rollups key on the student's current class, so moving a student moves their history.
"""

from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import find_active_structure, find_fee
from app.core.enums import FeeStatus
from app.core.fee_calculator import as_utc, collection_rate, to_decimal
from app.core.models import Fee, FeeStructure, Student, Teacher
from app.core.student_lookup import resolve_student

from .schemas import (
    AssignedClass,
    ClassStats,
    FeeReport,
    FeeReportRequest,
    FeeReportRow,
    FeeStructureSummary,
    FeeSummary,
    Overview,
    RecentPayment,
    SchoolStatistics,
    StudentFeeRow,
    StudentFeeTotals,
    TeacherClassFees,
    Totals,
)

RECENT_PAYMENTS_LIMIT = 10


def _totals(fees: List[Fee]) -> Totals:
    return Totals(
        total_amount=sum((to_decimal(f.total_amount) for f in fees), Decimal("0")),
        total_paid=sum((to_decimal(f.paid_amount) for f in fees), Decimal("0")),
        total_balance=sum((to_decimal(f.balance) for f in fees), Decimal("0")),
    )


def _name(record) -> str:
    return record.user.full_name if record is not None and record.user is not None else "Unknown"


async def get_school_statistics(db: AsyncSession) -> SchoolStatistics:
    student_count = (await db.execute(select(func.count(Student.id)))).scalar() or 0
    teacher_count = (await db.execute(select(func.count(Teacher.id)))).scalar() or 0
    structures = list(
        (
            await db.execute(
                select(FeeStructure)
                .where(FeeStructure.is_active.is_(True))
                .order_by(FeeStructure.academic_year, FeeStructure.grade, FeeStructure.term)
            )
        ).scalars().all()
    )
    fees = list((await db.execute(select(Fee))).scalars().all())
    students = list((await db.execute(select(Student))).scalars().all())

    totals = _totals(fees)

    by_class = OrderedDict()
    for fee in sorted(fees, key=lambda f: f.student.current_class):
        by_class.setdefault(fee.student.current_class, []).append(fee)
    students_per_class = {}
    for s in students:
        students_per_class[s.current_class] = students_per_class.get(s.current_class, 0) + 1

    class_stats = []
    for class_name, class_fees in by_class.items():
        t = _totals(class_fees)
        class_stats.append(
            ClassStats(
                class_name=class_name,
                student_count=students_per_class.get(class_name, 0),
                collection_rate=collection_rate(t.total_amount, t.total_paid),
                **t.model_dump(),
            )
        )

    recent = [
        RecentPayment(
            date=as_utc(p.payment_date),
            amount=to_decimal(p.amount),
            receipt_number=p.receipt_number,
            method=p.payment_method,
            student_id=fee.student_id,
            student_name=_name(fee.student),
        )
        for fee in fees
        for p in fee.payments
    ]
    recent.sort(key=lambda r: r.date, reverse=True)

    return SchoolStatistics(
        overview=Overview(
            total_students=student_count,
            total_teachers=teacher_count,
            active_fee_structures=len(structures),
        ),
        fee_summary=FeeSummary(
            collection_rate=collection_rate(totals.total_amount, totals.total_paid),
            outstanding_students=sum(1 for f in fees if to_decimal(f.balance) > 0),
            fully_paid_students=sum(1 for f in fees if to_decimal(f.balance) <= 0),
            **totals.model_dump(),
        ),
        class_stats=class_stats,
        recent_payments=recent[:RECENT_PAYMENTS_LIMIT],
        fee_structures_summary=[
            FeeStructureSummary(
                grade=s.grade,
                term=s.term,
                academic_year=s.academic_year,
                amount=to_decimal(s.amount),
                is_active=s.is_active,
            )
            for s in structures
        ],
    )


async def get_teacher_class_fees(db: AsyncSession, teacher: Teacher) -> TeacherClassFees:
    """Fee overview for the students whose homeroom teacher this is."""
    students = (
        await db.execute(
            select(Student).where(Student.teacher_id == teacher.id).order_by(Student.student_code)
        )
    ).scalars().all()

    rows = []
    all_fees = []
    for student in students:
        fees = list(
            (
                await db.execute(
                    select(Fee)
                    .where(Fee.student_id == student.id)
                    .order_by(Fee.academic_year.desc(), Fee.term)
                )
            ).scalars().all()
        )
        all_fees.extend(fees)
        rows.append(
            StudentFeeTotals(
                student=_name(student),
                student_code=student.student_code,
                fees=[
                    StudentFeeRow(
                        term=f.term,
                        academic_year=f.academic_year,
                        total_amount=to_decimal(f.total_amount),
                        paid_amount=to_decimal(f.paid_amount),
                        balance=to_decimal(f.balance),
                        status=f.status,
                    )
                    for f in fees
                ],
                **_totals(fees).model_dump(),
            )
        )

    assigned = teacher.assigned_class
    return TeacherClassFees(
        teacher_id=teacher.id,
        teacher_name=_name(teacher),
        assigned_class=AssignedClass(**assigned) if assigned else None,
        students=rows,
        total_students=len(rows),
        class_totals=_totals(all_fees),
    )


async def generate_fee_report(db: AsyncSession, payload: FeeReportRequest) -> FeeReport:
    """
    One row per requested student for the given term. Students without a fee record are
    reported from the active fee structure of their class (0 when none) as pending.
    """
    term = payload.term.value
    rows = []
    for key in payload.students:
        student = await resolve_student(db, key)
        parents = [_name(p) for p in student.parents]
        fee = await find_fee(db, student.id, term, payload.academic_year)
        if fee is None:
            structure = await find_active_structure(db, student.current_class, term, payload.academic_year)
            amount = to_decimal(structure.amount) if structure else Decimal("0")
            rows.append(
                FeeReportRow(
                    student=_name(student),
                    student_code=student.student_code,
                    current_class=student.current_class,
                    fee_amount=amount,
                    paid_amount=Decimal("0"),
                    balance=amount,
                    status=FeeStatus.pending,
                    parents=parents,
                )
            )
            continue
        last = fee.last_payment
        rows.append(
            FeeReportRow(
                student=_name(student),
                student_code=student.student_code,
                current_class=student.current_class,
                fee_amount=to_decimal(fee.total_amount),
                paid_amount=to_decimal(fee.paid_amount),
                balance=to_decimal(fee.balance),
                status=fee.status,
                parents=parents,
                last_payment=last.payment_date if last else None,
            )
        )

    return FeeReport(
        term=payload.term,
        academic_year=payload.academic_year,
        generated_date=datetime.now(timezone.utc),
        total_students=len(rows),
        total_amount=sum((r.fee_amount for r in rows), Decimal("0")),
        total_paid=sum((r.paid_amount for r in rows), Decimal("0")),
        total_balance=sum((r.balance for r in rows), Decimal("0")),
        students=rows,
    )
