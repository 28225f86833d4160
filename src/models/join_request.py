"""Class join request database model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class JoinRequestModel(Base):
    """A student's request to join one class."""

    __tablename__ = "class_join_requests"
    __table_args__ = (
        Index("ix_join_requests_class_status", "class_id", "status"),
        Index("ix_join_requests_student_status", "student_id", "status"),
        Index("ix_join_requests_class_student_status", "class_id", "student_id", "status"),
    )

    request_id = Column(String, primary_key=True, index=True)
    class_id = Column(
        String, ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String, nullable=False, default="pending")
    request_message = Column(String, nullable=True)
    review_message = Column(String, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    student = relationship("UserModel", lazy="joined")
