"""
Fee computation: balance and status are derived from total, paid and due date.

Status precedence (first match wins):
    paid     balance <= 0 (overpayment still counts as paid)
    partial  paid > 0
    overdue  now > due_date
    pending  otherwise
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from app.core.enums import FeeStatus


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC so they compare with aware ones."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def derive_fee_status(
    total_amount,
    paid_amount,
    due_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> FeeStatus:
    balance = to_decimal(total_amount) - to_decimal(paid_amount)
    if balance <= 0:
        return FeeStatus.paid
    if to_decimal(paid_amount) > 0:
        return FeeStatus.partial
    now = as_utc(now) or datetime.now(timezone.utc)
    due = as_utc(due_date)
    if due is not None and now > due:
        return FeeStatus.overdue
    return FeeStatus.pending


def compute_fee_state(
    total_amount,
    paid_amount,
    due_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> Tuple[Decimal, FeeStatus]:
    """Return (balance, status) for the given amounts."""
    balance = to_decimal(total_amount) - to_decimal(paid_amount)
    return balance, derive_fee_status(total_amount, paid_amount, due_date, now=now)


def collection_rate(total_amount, total_paid) -> int:
    """Whole-number percentage collected; 0 when nothing is billed."""
    total = to_decimal(total_amount)
    if total <= 0:
        return 0
    return int((to_decimal(total_paid) * 100 / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
