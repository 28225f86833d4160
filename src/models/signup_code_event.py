from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from .base import Base, utcnow


class SignupCodeEventModel(Base):
    """Audit trail of signup code activations, deactivations and resets."""

    __tablename__ = "signup_code_events"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(
        String,
        ForeignKey("batches.batch_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    action = Column(String, nullable=False)  # 'activated', 'deactivated', 'reset'
    reason = Column(String, nullable=True)
    old_code = Column(String, nullable=True, index=True)
    new_code = Column(String, nullable=True)
    performed_by = Column(String, nullable=True)
    performed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
