from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class BatchModel(Base):
    __tablename__ = "batches"

    batch_id = Column(String, primary_key=True, index=True)
    batch_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    academic_year = Column(String, nullable=False)
    created_by = Column(String, nullable=True)

    has_student_limit = Column(Boolean, nullable=False, default=False)
    max_students = Column(Integer, nullable=True)
    current_students = Column(Integer, nullable=False, default=0)

    # 'active', 'draft_deletion' or 'permanently_deleted'
    deletion_status = Column(String, nullable=False, default="active", index=True)
    deletion_reason = Column(String, nullable=True)
    marked_for_deletion_at = Column(DateTime(timezone=True), nullable=True)
    permanently_deleted_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    signup_code = relationship(
        "SignupCodeModel",
        back_populates="batch",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def can_accept_students(self) -> bool:
        has_space = (
            self.current_students < self.max_students
            if self.has_student_limit and self.max_students
            else True
        )
        return has_space and self.is_active and self.deletion_status == "active"
