from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class ClassEnrollmentModel(Base):
    __tablename__ = "class_enrollments"
    __table_args__ = (
        UniqueConstraint(
            "class_id", "student_id", name="uq_class_enrollments_class_student"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(String, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True)
    student_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True)
    request_id = Column(String, nullable=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    class_ = relationship("ClassModel", back_populates="enrollments")
