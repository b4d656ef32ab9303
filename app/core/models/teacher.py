import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Teacher(Base):
    """Teacher record. At most one teacher holds a given (assigned_grade, assigned_class_name)."""

    __tablename__ = "teachers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    teacher_code = Column(String(20), nullable=False, unique=True, index=True)
    assigned_grade = Column(String(5), nullable=True)
    # Section letter only ("A"); the class is assigned_grade + assigned_class_name
    assigned_class_name = Column(String(5), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", lazy="selectin")

    @property
    def assigned_class(self):
        if not self.assigned_grade or not self.assigned_class_name:
            return None
        return {"grade": self.assigned_grade, "class_name": self.assigned_class_name}
