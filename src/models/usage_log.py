from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from .base import Base, utcnow


class UsageLogModel(Base):
    __tablename__ = "signup_code_usage_logs"
    __table_args__ = (
        Index("ix_usage_logs_batch_used_at", "batch_id", "used_at"),
        Index("ix_usage_logs_code_used_at", "signup_code", "used_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Null when the presented code matched no batch
    batch_id = Column(
        String, ForeignKey("batches.batch_id", ondelete="SET NULL"), nullable=True
    )
    user_name = Column(String, nullable=False)
    user_email = Column(String, nullable=False)
    signup_code = Column(String, nullable=False)
    registration_status = Column(String, nullable=False, default="pending")
    failure_reason = Column(String, nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
