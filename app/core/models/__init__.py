from app.auth.models import User
from app.core.models.student import Student
from app.core.models.teacher import Teacher
from app.core.models.parent import Parent, student_parents
from app.core.models.staff import Admin, Receptionist
from app.core.models.fee_structure import FeeStructure
from app.core.models.fee import Fee, FeePayment
from app.core.models.payment_transaction import PaymentTransaction

__all__ = [
    "Admin",
    "Fee",
    "FeePayment",
    "FeeStructure",
    "Parent",
    "PaymentTransaction",
    "Receptionist",
    "Student",
    "Teacher",
    "User",
    "student_parents",
]
