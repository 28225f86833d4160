"""Signup code database model.

One row per batch. The ``code`` column holds the only live value for the
batch; superseded values survive only in ``signup_code_events``.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base, as_utc, utcnow


class SignupCodeModel(Base):
    """Signup code database model."""

    __tablename__ = "signup_codes"

    batch_id = Column(
        String, ForeignKey("batches.batch_id", ondelete="CASCADE"), primary_key=True
    )
    code = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    max_usage = Column(Integer, nullable=True)  # None means unlimited
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    reset_at = Column(DateTime(timezone=True), nullable=True)
    reset_reason = Column(String, nullable=True)
    reset_count = Column(Integer, nullable=False, default=0)

    activated_at = Column(DateTime(timezone=True), nullable=True, default=utcnow)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    deactivation_reason = Column(String, nullable=True)

    batch = relationship("BatchModel", back_populates="signup_code")

    def can_be_used(self):
        """Return ``(usable, reason)`` for a redemption attempt."""
        if not self.is_active:
            return False, "Signup code is deactivated"
        if self.expires_at and utcnow() > as_utc(self.expires_at):
            return False, "Signup code has expired"
        if self.max_usage is not None and self.usage_count >= self.max_usage:
            return False, "Signup code usage limit reached"
        return True, None

    @property
    def remaining_usage(self):
        if self.max_usage is None:
            return None
        return max(0, self.max_usage - self.usage_count)
