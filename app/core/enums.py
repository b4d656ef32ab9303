from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    RECEPTIONIST = "receptionist"
    STUDENT = "student"
    PARENT = "parent"


STAFF_ROLES = (UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST)


class Term(str, Enum):
    TERM_1 = "Term 1"
    TERM_2 = "Term 2"
    TERM_3 = "Term 3"


class FeeStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    MOBILE_MONEY = "mobile-money"
    GATEWAY = "gateway"


# Methods a receptionist may record by hand; "gateway" is set only by reconciliation.
MANUAL_PAYMENT_METHODS = (PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.MOBILE_MONEY)


class TransactionStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"
    failed = "failed"
    awaiting_delivery = "awaiting_delivery"
    delivered = "delivered"


# Grade + section, e.g. "2A". Grades 1-7, sections A and B.
GRADES = tuple(str(g) for g in range(1, 8))
SECTIONS = ("A", "B")
CLASS_NAMES = tuple(f"{g}{s}" for g in GRADES for s in SECTIONS)
