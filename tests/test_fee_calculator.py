from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.core.enums import FeeStatus
from app.core.fee_calculator import collection_rate, compute_fee_state, derive_fee_status

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)
FUTURE = NOW + timedelta(days=10)
PAST = NOW - timedelta(days=10)


@pytest.mark.parametrize(
    "total, paid, due, expected",
    [
        ("500", "500", PAST, FeeStatus.paid),
        ("500", "600", FUTURE, FeeStatus.paid),
        ("500", "100", PAST, FeeStatus.partial),
        ("500", "0", PAST, FeeStatus.overdue),
        ("500", "0", FUTURE, FeeStatus.pending),
        ("0", "0", PAST, FeeStatus.paid),
    ],
)
def test_derive_fee_status_precedence(total, paid, due, expected) -> None:
    assert derive_fee_status(Decimal(total), Decimal(paid), due, now=NOW) == expected


def test_naive_due_date_treated_as_utc() -> None:
    naive_past = PAST.replace(tzinfo=None)
    assert derive_fee_status(Decimal("10"), Decimal("0"), naive_past, now=NOW) == FeeStatus.overdue


def test_compute_fee_state_balance() -> None:
    balance, status = compute_fee_state(Decimal("750.50"), Decimal("250.25"), FUTURE, now=NOW)
    assert balance == Decimal("500.25")
    assert status == FeeStatus.partial


def test_collection_rate_rounds_and_handles_zero() -> None:
    assert collection_rate(Decimal("0"), Decimal("0")) == 0
    assert collection_rate(Decimal("300"), Decimal("100")) == 33
    assert collection_rate(Decimal("200"), Decimal("1")) == 1
    assert collection_rate(Decimal("8"), Decimal("1")) == 13
