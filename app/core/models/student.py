"""Student record. current_class is grade + section (e.g. "2A"); teacher is the homeroom teacher of that class."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    # Human-readable identifier, e.g. STU20240001. Never used for joins.
    student_code = Column(String(20), nullable=False, unique=True, index=True)
    date_of_birth = Column(Date, nullable=True)
    current_grade = Column(String(5), nullable=False)
    current_class = Column(String(5), nullable=False, index=True)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", lazy="selectin")
    teacher = relationship("Teacher", lazy="selectin")
    parents = relationship(
        "Parent", secondary="student_parents", back_populates="children", lazy="selectin"
    )
