"""Batch lifecycle management.

A batch owns exactly one signup code, issued when the batch is created.
"""

import logging
import secrets
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from config import MAX_REASON_LENGTH
from core.database import transaction
from core.exceptions import InvalidStateError, NotFoundError, ValidationError
from models.base import utcnow
from models.batch import BatchModel
from schemas.enums import DeletionStatus
from utils.signup_code_registry import SignupCodeRegistry

logger = logging.getLogger(__name__)

MAX_BATCH_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_STUDENT_LIMIT = 1000


class BatchManager:
    """Manages batch creation and soft deletion."""

    def __init__(self, db: Session):
        self.db = db
        self.registry = SignupCodeRegistry(db)

    def create_batch(
        self,
        batch_name: str,
        academic_year: str,
        description: Optional[str] = None,
        has_student_limit: bool = False,
        max_students: Optional[int] = None,
        created_by: Optional[str] = None,
        code_max_usage: Optional[int] = None,
        code_expires_at: Optional[datetime] = None,
    ) -> BatchModel:
        """Create a batch together with its initial signup code.

        ``code_max_usage`` and ``code_expires_at`` bound the issued code;
        both default to unlimited.

        Raises:
            ValidationError: If any field is missing or out of range.
            ConflictError: If no unused signup code could be drawn.
        """
        batch_name = (batch_name or "").strip()
        academic_year = (academic_year or "").strip()
        if not batch_name:
            raise ValidationError("Batch name is required")
        if len(batch_name) > MAX_BATCH_NAME_LENGTH:
            raise ValidationError(
                f"Batch name cannot exceed {MAX_BATCH_NAME_LENGTH} characters"
            )
        if not academic_year:
            raise ValidationError("Academic year is required")
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )
        if has_student_limit:
            if not max_students or not 1 <= max_students <= MAX_STUDENT_LIMIT:
                raise ValidationError(
                    f"Maximum students must be between 1 and {MAX_STUDENT_LIMIT} "
                    "when the student limit is enabled"
                )
        else:
            max_students = None

        batch = BatchModel(
            batch_id=secrets.token_hex(8),
            batch_name=batch_name,
            academic_year=academic_year,
            description=(description or "").strip() or None,
            has_student_limit=has_student_limit,
            max_students=max_students,
            current_students=0,
            created_by=created_by,
            deletion_status=DeletionStatus.ACTIVE.value,
            is_active=True,
        )
        with transaction(self.db, "creating batch"):
            self.db.add(batch)
            self.db.flush()
            self.registry.issue_for_batch(
                batch.batch_id,
                performed_by=created_by,
                max_usage=code_max_usage,
                expires_at=code_expires_at,
            )
        self.db.refresh(batch)
        logger.info("Created batch %s (%s)", batch.batch_id, batch.batch_name)
        return batch

    def get_batch(self, batch_id: str) -> BatchModel:
        batch = (
            self.db.query(BatchModel).filter(BatchModel.batch_id == batch_id).first()
        )
        if not batch:
            raise NotFoundError("Batch", batch_id)
        return batch

    def list_batches(self, include_deleted: bool = False) -> List[BatchModel]:
        query = self.db.query(BatchModel)
        if not include_deleted:
            query = query.filter(
                BatchModel.deletion_status != DeletionStatus.PERMANENTLY_DELETED.value
            )
        return query.order_by(BatchModel.created_at.desc()).all()

    def mark_for_deletion(
        self, batch_id: str, reason: Optional[str] = None, performed_by: Optional[str] = None
    ) -> BatchModel:
        """Soft-delete a batch and switch its signup code off."""
        if reason and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(
                f"Deletion reason cannot exceed {MAX_REASON_LENGTH} characters"
            )
        batch = self.get_batch(batch_id)
        if batch.deletion_status != DeletionStatus.ACTIVE.value:
            raise InvalidStateError(
                f"Batch is already in deletion state '{batch.deletion_status}'"
            )
        with transaction(self.db, "marking batch for deletion"):
            batch.deletion_status = DeletionStatus.DRAFT_DELETION.value
            batch.marked_for_deletion_at = utcnow()
            batch.deletion_reason = reason
            batch.is_active = False
            self.registry.deactivate_for_batch(
                batch_id, "Batch marked for deletion", performed_by
            )
        self.db.refresh(batch)
        logger.info("Batch %s marked for deletion", batch_id)
        return batch

    def permanently_delete(
        self, batch_id: str, performed_by: Optional[str] = None
    ) -> BatchModel:
        """Move a draft-deleted batch into the terminal deleted state."""
        batch = self.get_batch(batch_id)
        if batch.deletion_status != DeletionStatus.DRAFT_DELETION.value:
            raise InvalidStateError(
                "Only batches marked for deletion can be permanently deleted"
            )
        with transaction(self.db, "permanently deleting batch"):
            batch.deletion_status = DeletionStatus.PERMANENTLY_DELETED.value
            batch.permanently_deleted_at = utcnow()
            batch.is_active = False
        self.db.refresh(batch)
        logger.info("Batch %s permanently deleted by %s", batch_id, performed_by)
        return batch
