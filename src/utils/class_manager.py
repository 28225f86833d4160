"""Class management utilities.

Enrollment count is the only shared mutable state on a class. It is only
ever incremented through ``claim_seat``, a conditional UPDATE that refuses
to go past ``max_students``.
"""

import logging
import secrets
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.database import transaction
from core.exceptions import AlreadyEnrolledError, NotFoundError, ValidationError
from models.batch import BatchModel
from models.class_enrollment import ClassEnrollmentModel
from models.class_model import ClassModel
from models.user import UserModel
from schemas.class_schema import CapacityInfo
from schemas.enums import ClassVisibility

logger = logging.getLogger(__name__)


class ClassManager:
    """Manages classes, enrollment rows and seat counting."""

    def __init__(self, db: Session):
        self.db = db

    def create_class(
        self,
        class_name: str,
        teacher_id: str,
        batch_id: Optional[str] = None,
        visibility: ClassVisibility = ClassVisibility.OPEN,
        max_students: Optional[int] = None,
    ) -> ClassModel:
        """Create a new class."""
        class_name = (class_name or "").strip()
        if not class_name:
            raise ValidationError("Class name cannot be empty")
        if max_students is not None and max_students < 1:
            raise ValidationError("Maximum students must be at least 1")
        if batch_id:
            exists = (
                self.db.query(BatchModel.batch_id)
                .filter(BatchModel.batch_id == batch_id)
                .first()
            )
            if not exists:
                raise NotFoundError("Batch", batch_id)

        class_model = ClassModel(
            class_id=secrets.token_hex(8),
            class_name=class_name,
            teacher_id=teacher_id,
            batch_id=batch_id,
            visibility=ClassVisibility(visibility).value,
            max_students=max_students,
            current_enrolled=0,
            is_active=True,
        )
        with transaction(self.db, "creating class"):
            self.db.add(class_model)
        self.db.refresh(class_model)
        logger.info("Created class %s (%s)", class_model.class_id, class_name)
        return class_model

    def get_class(self, class_id: str, fresh: bool = False) -> ClassModel:
        """Load a class.

        Args:
            class_id: Class ID.
            fresh: Bypass the session's identity map so counts reflect what
                other sessions have committed.
        """
        query = self.db.query(ClassModel).filter(ClassModel.class_id == class_id)
        if fresh:
            query = query.populate_existing()
        model = query.first()
        if not model:
            raise NotFoundError("Class", class_id)
        return model

    def get_capacity(self, class_id: str) -> CapacityInfo:
        model = self.get_class(class_id, fresh=True)
        return CapacityInfo.of(model.current_enrolled, model.max_students)

    def is_enrolled(self, class_id: str, student_id: str) -> bool:
        return (
            self.db.query(ClassEnrollmentModel.id)
            .filter(
                ClassEnrollmentModel.class_id == class_id,
                ClassEnrollmentModel.student_id == student_id,
            )
            .first()
            is not None
        )

    def claim_seat(self, class_id: str) -> bool:
        """Atomically take one seat if the class has room.

        Check and increment happen in one statement, so concurrent callers
        can never push ``current_enrolled`` past ``max_students``. Joins the
        caller's transaction.

        Returns:
            True if a seat was taken.
        """
        result = self.db.execute(
            update(ClassModel)
            .where(
                ClassModel.class_id == class_id,
                or_(
                    ClassModel.max_students.is_(None),
                    ClassModel.current_enrolled < ClassModel.max_students,
                ),
            )
            .values(current_enrolled=ClassModel.current_enrolled + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_enrollment(
        self, class_id: str, student_id: str, request_id: Optional[str] = None
    ) -> ClassEnrollmentModel:
        """Insert the enrollment row. Joins the caller's transaction.

        Raises:
            AlreadyEnrolledError: If the student is already enrolled.
        """
        enrollment = ClassEnrollmentModel(
            class_id=class_id, student_id=student_id, request_id=request_id
        )
        self.db.add(enrollment)
        try:
            self.db.flush()
        except IntegrityError:
            raise AlreadyEnrolledError()
        return enrollment

    def list_enrolled(self, class_id: str) -> List[dict]:
        self.get_class(class_id)
        query = (
            self.db.query(ClassEnrollmentModel, UserModel)
            .join(UserModel, UserModel.user_id == ClassEnrollmentModel.student_id)
            .filter(ClassEnrollmentModel.class_id == class_id)
            .order_by(ClassEnrollmentModel.joined_at.asc())
        )
        results = []
        for enrollment, user in query.all():
            results.append(
                {
                    "student_id": user.user_id,
                    "display_name": user.display_name,
                    "email": user.email,
                    "joined_at": enrollment.joined_at,
                }
            )
        return results
