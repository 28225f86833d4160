"""Signup code registry.

Owns the one-code-per-batch invariant. Every mutation that could race
(reset, consumption on redemption) is a single conditional UPDATE keyed on
the value the caller observed, so a stale value can never be reset twice or
redeemed after it was superseded.
"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import not_, or_, update
from sqlalchemy.orm import Session

from config import MAX_REASON_LENGTH, SIGNUP_CODE_BYTES, SIGNUP_CODE_MAX_ATTEMPTS
from core.database import transaction
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.base import as_utc, utcnow
from models.batch import BatchModel
from models.signup_code import SignupCodeModel
from models.usage_log import UsageLogModel
from schemas.enums import DeletionStatus, RegistrationStatus, SignupCodeAction
from utils.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

INVALID_CODE_REASON = "Invalid or expired signup code"
BATCH_FULL_REASON = "Batch is full or not accepting new students"


class SignupCodeRegistry:
    """Issues, toggles, resets and redeems batch signup codes."""

    def __init__(self, db: Session):
        """Initialize SignupCodeRegistry.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db
        self.ledger = UsageLedger(db)

    def _require_batch(self, batch_id: str) -> BatchModel:
        batch = (
            self.db.query(BatchModel).filter(BatchModel.batch_id == batch_id).first()
        )
        if not batch or batch.deletion_status == DeletionStatus.PERMANENTLY_DELETED.value:
            raise NotFoundError("Batch", batch_id)
        return batch

    def _get_code_row(self, batch_id: str) -> SignupCodeModel:
        row = (
            self.db.query(SignupCodeModel)
            .filter(SignupCodeModel.batch_id == batch_id)
            .first()
        )
        if not row:
            raise NotFoundError("Signup code for batch", batch_id)
        return row

    @staticmethod
    def _check_reason(reason: Optional[str]) -> Optional[str]:
        reason = (reason or "").strip() or None
        if reason and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
        return reason

    def generate_unique_code(self) -> str:
        """Draw a code value that is neither live nor superseded.

        Raises:
            ConflictError: If every attempt collided.
        """
        for attempt in range(1, SIGNUP_CODE_MAX_ATTEMPTS + 1):
            code = secrets.token_hex(SIGNUP_CODE_BYTES).upper()
            taken = (
                self.db.query(SignupCodeModel.batch_id)
                .filter(SignupCodeModel.code == code)
                .first()
            )
            if not taken and not self.ledger.was_ever_issued(code):
                return code
            logger.debug("Signup code collision on attempt %d", attempt)
        raise ConflictError(
            f"Unable to generate unique signup code after {SIGNUP_CODE_MAX_ATTEMPTS} attempts"
        )

    def issue_for_batch(
        self,
        batch_id: str,
        performed_by: Optional[str] = None,
        max_usage: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ) -> SignupCodeModel:
        """Create the initial code of a new batch. Joins the caller's transaction.

        Raises:
            ValidationError: If ``max_usage`` is below 1 or ``expires_at`` is
                not in the future.
        """
        if max_usage is not None and max_usage < 1:
            raise ValidationError("Signup code usage limit must be at least 1")
        if expires_at is not None and as_utc(expires_at) <= utcnow():
            raise ValidationError("Signup code expiry must be in the future")
        code = self.generate_unique_code()
        now = utcnow()
        row = SignupCodeModel(
            batch_id=batch_id,
            code=code,
            is_active=True,
            usage_count=0,
            max_usage=max_usage,
            expires_at=as_utc(expires_at),
            reset_count=0,
            created_at=now,
            activated_at=now,
        )
        self.db.add(row)
        self.db.flush()
        self.ledger.record_event(
            batch_id,
            SignupCodeAction.ACTIVATED,
            reason="Initial creation",
            performed_by=performed_by,
            new_code=code,
        )
        return row

    def reset_code(
        self,
        batch_id: str,
        reason: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> SignupCodeModel:
        """Replace the batch's code with a fresh value.

        The old value is superseded in the same UPDATE that installs the new
        one, and the new code starts active with zero usage.

        Raises:
            NotFoundError: If the batch is unknown or permanently deleted.
            ConflictError: If another reset replaced the value first.
        """
        reason = self._check_reason(reason)
        self._require_batch(batch_id)
        row = self._get_code_row(batch_id)
        old_code = row.code
        new_code = self.generate_unique_code()
        now = utcnow()

        with transaction(self.db, "resetting signup code"):
            result = self.db.execute(
                update(SignupCodeModel)
                .where(
                    SignupCodeModel.batch_id == batch_id,
                    SignupCodeModel.code == old_code,
                )
                .values(
                    code=new_code,
                    is_active=True,
                    usage_count=0,
                    reset_at=now,
                    reset_reason=reason,
                    reset_count=SignupCodeModel.reset_count + 1,
                    activated_at=now,
                    deactivated_at=None,
                    deactivation_reason=None,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError(
                    "Signup code was reset concurrently; reload the batch and retry"
                )
            self.ledger.record_event(
                batch_id,
                SignupCodeAction.RESET,
                reason=reason,
                performed_by=performed_by,
                old_code=old_code,
                new_code=new_code,
            )
        self.db.refresh(row)
        logger.info("Reset signup code for batch %s (reset #%d)", batch_id, row.reset_count)
        return row

    def toggle_status(
        self,
        batch_id: str,
        reason: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> SignupCodeModel:
        """Flip the code's active flag. Value and usage count are untouched.

        Raises:
            NotFoundError: If the batch is unknown or permanently deleted.
        """
        reason = self._check_reason(reason)
        self._require_batch(batch_id)
        row = self._get_code_row(batch_id)

        with transaction(self.db, "toggling signup code"):
            self.db.execute(
                update(SignupCodeModel)
                .where(SignupCodeModel.batch_id == batch_id)
                .values(is_active=not_(SignupCodeModel.is_active))
                .execution_options(synchronize_session=False)
            )
            self.db.refresh(row)
            now = utcnow()
            if row.is_active:
                row.activated_at = now
                row.deactivated_at = None
                row.deactivation_reason = None
            else:
                row.deactivated_at = now
                row.deactivation_reason = reason
            self.ledger.record_event(
                batch_id,
                SignupCodeAction.for_active_flag(row.is_active),
                reason=reason,
                performed_by=performed_by,
            )
        self.db.refresh(row)
        logger.info(
            "Signup code for batch %s %s",
            batch_id,
            "activated" if row.is_active else "deactivated",
        )
        return row

    def get_status(self, batch_id: str) -> SignupCodeModel:
        self._require_batch(batch_id)
        return self._get_code_row(batch_id)

    def deactivate_for_batch(
        self, batch_id: str, reason: str, performed_by: Optional[str] = None
    ) -> None:
        """Switch the code off as part of a batch mutation. Joins the caller's transaction."""
        row = self._get_code_row(batch_id)
        if not row.is_active:
            return
        row.is_active = False
        row.deactivated_at = utcnow()
        row.deactivation_reason = reason
        self.ledger.record_event(
            batch_id,
            SignupCodeAction.DEACTIVATED,
            reason=reason,
            performed_by=performed_by,
        )

    def redeem(self, code: str, user_name: str, user_email: str) -> UsageLogModel:
        """Consume one use of a signup code and seat the user in its batch.

        Every attempt lands in the usage ledger, including failures.

        Returns:
            The successful usage log entry.

        Raises:
            ValidationError: If the input is blank or the code cannot be used;
                the message carries the specific reason.
        """
        normalized = (code or "").strip().upper()
        user_name = (user_name or "").strip()
        user_email = (user_email or "").strip().lower()
        if not normalized:
            raise ValidationError("Signup code is required")
        if not user_name or not user_email:
            raise ValidationError("User name and email are required")

        failure: Optional[str] = None
        with transaction(self.db, "redeeming signup code"):
            entry = self.ledger.record(
                None, user_name, user_email, normalized, RegistrationStatus.PENDING
            )
            row = (
                self.db.query(SignupCodeModel)
                .filter(SignupCodeModel.code == normalized)
                .first()
            )
            batch = row.batch if row else None
            batch_id = batch.batch_id if batch else None

            if (
                batch is None
                or batch.deletion_status != DeletionStatus.ACTIVE.value
                or not batch.is_active
            ):
                failure = INVALID_CODE_REASON
            else:
                usable, reason = row.can_be_used()
                if not usable:
                    failure = reason
                elif not batch.can_accept_students():
                    failure = BATCH_FULL_REASON
                else:
                    failure = self._consume(batch_id, normalized)

            self.ledger.resolve(
                entry.id,
                RegistrationStatus.FAILED if failure else RegistrationStatus.SUCCESSFUL,
                failure_reason=failure,
                batch_id=batch_id,
            )

        if failure:
            logger.warning("Signup code %s refused: %s", normalized, failure)
            raise ValidationError(failure)
        logger.info("Signup code %s redeemed for batch %s", normalized, batch_id)
        self.db.refresh(entry)
        return entry

    def _consume(self, batch_id: str, code: str) -> Optional[str]:
        """Increment usage and seat count; return a failure reason or None."""
        consumed = self.db.execute(
            update(SignupCodeModel)
            .where(
                SignupCodeModel.batch_id == batch_id,
                SignupCodeModel.code == code,
                SignupCodeModel.is_active.is_(True),
                or_(
                    SignupCodeModel.max_usage.is_(None),
                    SignupCodeModel.usage_count < SignupCodeModel.max_usage,
                ),
            )
            .values(usage_count=SignupCodeModel.usage_count + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        if consumed != 1:
            return INVALID_CODE_REASON

        seated = self.db.execute(
            update(BatchModel)
            .where(
                BatchModel.batch_id == batch_id,
                or_(
                    BatchModel.has_student_limit.is_(False),
                    BatchModel.max_students.is_(None),
                    BatchModel.current_students < BatchModel.max_students,
                ),
            )
            .values(current_students=BatchModel.current_students + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        if seated != 1:
            # Give the use back; this transaction still holds the write lock.
            self.db.execute(
                update(SignupCodeModel)
                .where(SignupCodeModel.batch_id == batch_id)
                .values(usage_count=SignupCodeModel.usage_count - 1)
                .execution_options(synchronize_session=False)
            )
            return BATCH_FULL_REASON
        return None
