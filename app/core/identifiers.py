"""
Human-readable identifiers.

- Role codes: PREFIX + year + 4-digit sequence (e.g. STU20240001). Identification only, never for joins.
- Receipt numbers: RCPT- + uuid4 hex, unique without a DB check.
- Gateway references: SCHOOL_<student_code>_<epoch millis>, checked against existing transactions.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import UserRole
from app.core.exceptions import ConflictError

ROLE_CODE_PREFIX = {
    UserRole.STUDENT: "STU",
    UserRole.TEACHER: "TCH",
    UserRole.PARENT: "PAR",
    UserRole.ADMIN: "ADM",
    UserRole.RECEPTIONIST: "REC",
}


def format_role_code(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}{year}{sequence:04d}"


async def generate_role_code(
    db: AsyncSession,
    code_column,
    role: UserRole,
    year: Optional[int] = None,
    max_attempts: int = 20,
) -> str:
    """
    Next free code for the role in the given year.
    Starts from count + 1 and walks forward on collision (rows may have been deleted).
    """
    prefix = ROLE_CODE_PREFIX[role]
    year = year or datetime.now().year
    stem = f"{prefix}{year}"
    count = (
        await db.execute(
            select(func.count()).select_from(code_column.class_).where(code_column.like(f"{stem}%"))
        )
    ).scalar() or 0
    for offset in range(max_attempts):
        code = format_role_code(prefix, year, count + 1 + offset)
        taken = (await db.execute(select(code_column).where(code_column == code))).scalar_one_or_none()
        if taken is None:
            return code
    raise ConflictError(f"Could not generate unique {role.value} code")


def generate_receipt_number() -> str:
    return f"RCPT-{uuid.uuid4().hex.upper()}"


def generate_payment_reference(student_code: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"SCHOOL_{student_code}_{int(now.timestamp() * 1000)}"
