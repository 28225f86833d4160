from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class ClassModel(Base):
    __tablename__ = "classes"

    class_id = Column(String, primary_key=True, index=True)
    class_name = Column(String, nullable=False)
    teacher_id = Column(String, index=True, nullable=False)
    batch_id = Column(
        String, ForeignKey("batches.batch_id"), index=True, nullable=True
    )
    # 'open', 'unlisted' or 'request_to_join'
    visibility = Column(String, nullable=False, default="open", index=True)
    max_students = Column(Integer, nullable=True)  # None means unlimited
    current_enrolled = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    enrollments = relationship(
        "ClassEnrollmentModel",
        back_populates="class_",
        cascade="all, delete-orphan",
    )
