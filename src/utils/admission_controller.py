"""Capacity-aware admission of class join requests.

Each approval is one transaction that (1) moves the request from pending to
approved with a conditional UPDATE, (2) claims a seat with a conditional
UPDATE on the class, (3) inserts the enrollment row and (4) force-rejects the
student's other pending requests for the same class. If any step fails the
whole transaction rolls back and the request stays pending.

Bulk calls run that transaction once per request, in input order, so partial
success is possible and reported item by item.
"""

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from config import (
    ALREADY_ENROLLED_MESSAGE,
    AUTO_REJECT_SIBLING_MESSAGE,
    MAX_MESSAGE_LENGTH,
)
from core.database import transaction
from core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from models.base import utcnow
from models.join_request import JoinRequestModel
from schemas.class_schema import CapacityInfo
from schemas.enums import BulkOutcome, JoinRequestStatus
from schemas.join_request import BulkApproveResult, BulkRejectResult
from utils.bulk_reporter import BulkOperationReporter, TraceItem
from utils.class_manager import ClassManager

logger = logging.getLogger(__name__)

CLASS_FULL_REASON = "Class is full"
DIFFERENT_CLASS_REASON = "All requests must belong to the same class"


def clean_message(message: Optional[str], required: bool, label: str = "Review message") -> Optional[str]:
    """Strip and validate a request or review message.

    Raises:
        ValidationError: If required and blank, or longer than the limit.
    """
    message = (message or "").strip()
    if required and not message:
        raise ValidationError(f"{label} is required for rejection")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"{label} cannot exceed {MAX_MESSAGE_LENGTH} characters")
    return message or None


def student_name(request: JoinRequestModel) -> str:
    if request.student is not None:
        return request.student.display_name
    return request.student_id


class AdmissionController:
    """Approves and rejects join requests under the class capacity limit."""

    def __init__(self, db: Session):
        """Initialize AdmissionController.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db
        self.classes = ClassManager(db)
        self.reporter = BulkOperationReporter()

    def _load_request(self, request_id: str) -> JoinRequestModel:
        request = (
            self.db.query(JoinRequestModel)
            .filter(JoinRequestModel.request_id == request_id)
            .populate_existing()
            .first()
        )
        if not request:
            raise NotFoundError("Join request", request_id)
        return request

    def _set_status(
        self,
        request_id: str,
        target: JoinRequestStatus,
        review_message: Optional[str],
        reviewer_id: Optional[str],
    ) -> bool:
        """Conditionally move one pending request. Joins the caller's transaction."""
        now = utcnow()
        result = self.db.execute(
            update(JoinRequestModel)
            .where(
                JoinRequestModel.request_id == request_id,
                JoinRequestModel.status == JoinRequestStatus.PENDING.value,
            )
            .values(
                status=target.value,
                review_message=review_message,
                reviewed_by=reviewer_id,
                reviewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _reject_siblings(self, request: JoinRequestModel, reviewer_id: Optional[str]) -> int:
        now = utcnow()
        result = self.db.execute(
            update(JoinRequestModel)
            .where(
                JoinRequestModel.class_id == request.class_id,
                JoinRequestModel.student_id == request.student_id,
                JoinRequestModel.status == JoinRequestStatus.PENDING.value,
                JoinRequestModel.request_id != request.request_id,
            )
            .values(
                status=JoinRequestStatus.REJECTED.value,
                review_message=AUTO_REJECT_SIBLING_MESSAGE,
                reviewed_by=reviewer_id,
                reviewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _commit_approval(
        self,
        request: JoinRequestModel,
        review_message: Optional[str],
        reviewer_id: Optional[str],
    ) -> None:
        """Run steps 1-4 of an approval. Must be called inside ``transaction``."""
        class_model = self.classes.get_class(request.class_id, fresh=True)
        if not class_model.is_active:
            raise InvalidStateError("Class is not active")
        if self.classes.is_enrolled(request.class_id, request.student_id):
            raise AlreadyEnrolledError(ALREADY_ENROLLED_MESSAGE)

        if not self._set_status(
            request.request_id, JoinRequestStatus.APPROVED, review_message, reviewer_id
        ):
            raise InvalidStateError("This request has already been processed")

        if not self.classes.claim_seat(request.class_id):
            capacity = self.classes.get_capacity(request.class_id)
            raise CapacityExceededError(request.class_id, capacity.current, capacity.max)

        self.classes.add_enrollment(request.class_id, request.student_id, request.request_id)
        siblings = self._reject_siblings(request, reviewer_id)
        if siblings:
            logger.info(
                "Auto-rejected %d sibling request(s) of %s", siblings, request.request_id
            )

    def approve(
        self,
        request_id: str,
        review_message: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> JoinRequestModel:
        """Approve one pending request.

        Args:
            request_id: Join request ID.
            review_message: Optional note for the student.
            reviewer_id: user_id of the approving teacher or admin.

        Returns:
            The approved request.

        Raises:
            NotFoundError: If the request does not exist.
            InvalidStateError: If the request is not pending or the student is
                already enrolled.
            CapacityExceededError: If the class is full; the request stays pending.
            ValidationError: If the review message is too long.
        """
        review_message = clean_message(review_message, required=False)
        request = self._load_request(request_id)
        JoinRequestStatus(request.status).transition_to(JoinRequestStatus.APPROVED)

        try:
            with transaction(self.db, "approving join request"):
                self._commit_approval(request, review_message, reviewer_id)
        except CapacityExceededError:
            logger.warning("Approval of %s refused: class %s is full", request_id, request.class_id)
            raise

        request = self._load_request(request_id)
        logger.info("Approved join request %s for class %s", request_id, request.class_id)
        return request

    def reject(
        self,
        request_id: str,
        review_message: Optional[str],
        reviewer_id: Optional[str] = None,
    ) -> JoinRequestModel:
        """Reject one pending request. A reason is mandatory.

        Raises:
            ValidationError: If the reason is blank or too long.
            NotFoundError: If the request does not exist.
            InvalidStateError: If the request is not pending.
        """
        review_message = clean_message(review_message, required=True)
        request = self._load_request(request_id)
        JoinRequestStatus(request.status).transition_to(JoinRequestStatus.REJECTED)

        with transaction(self.db, "rejecting join request"):
            if not self._set_status(
                request_id, JoinRequestStatus.REJECTED, review_message, reviewer_id
            ):
                raise InvalidStateError("This request has already been processed")

        request = self._load_request(request_id)
        logger.info("Rejected join request %s", request_id)
        return request

    def get_capacity(self, class_id: str) -> CapacityInfo:
        return self.classes.get_capacity(class_id)

    def bulk_approve(
        self,
        request_ids: List[str],
        review_message: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> BulkApproveResult:
        """Approve requests one at a time, in order, until the class fills.

        Capacity is re-checked for every item. Items that cannot be approved
        are reported, never dropped: approved + rejected + already_enrolled
        always equals ``len(request_ids)``.

        Raises:
            ValidationError: If ``request_ids`` is empty or the message is too long.
            InfrastructureError: If storage fails; items before the failure may
                already be committed.
        """
        if not request_ids:
            raise ValidationError("Request IDs are required")
        review_message = clean_message(review_message, required=False)

        trace: List[TraceItem] = []
        run_class_id: Optional[str] = None
        for request_id in request_ids:
            try:
                request = self._load_request(request_id)
            except NotFoundError as exc:
                trace.append(TraceItem(request_id, BulkOutcome.REJECTED, reason=str(exc)))
                continue

            if run_class_id is None:
                run_class_id = request.class_id
            elif request.class_id != run_class_id:
                trace.append(
                    TraceItem(
                        request_id,
                        BulkOutcome.REJECTED,
                        student_name(request),
                        DIFFERENT_CLASS_REASON,
                    )
                )
                continue

            trace.append(self._approve_item(request, review_message, reviewer_id))

        capacity = self.classes.get_capacity(run_class_id) if run_class_id else None
        result = self.reporter.approve_report(trace, capacity)
        logger.info(
            "Bulk approve on class %s: %d approved, %d rejected, %d already enrolled",
            run_class_id,
            result.approved,
            result.rejected,
            result.already_enrolled,
        )
        return result

    def _approve_item(
        self,
        request: JoinRequestModel,
        review_message: Optional[str],
        reviewer_id: Optional[str],
    ) -> TraceItem:
        name = student_name(request)
        request_id = request.request_id
        status = JoinRequestStatus(request.status)

        if status is JoinRequestStatus.APPROVED:
            return TraceItem(
                request_id, BulkOutcome.ALREADY_ENROLLED, name, "Request was already approved"
            )
        if status is JoinRequestStatus.REJECTED:
            if self.classes.is_enrolled(request.class_id, request.student_id):
                return TraceItem(
                    request_id, BulkOutcome.ALREADY_ENROLLED, name, ALREADY_ENROLLED_MESSAGE
                )
            return TraceItem(
                request_id,
                BulkOutcome.REJECTED,
                name,
                request.review_message or "Request was already rejected",
            )

        if self.classes.is_enrolled(request.class_id, request.student_id):
            with transaction(self.db, "rejecting join request of enrolled student"):
                self._set_status(
                    request_id, JoinRequestStatus.REJECTED, ALREADY_ENROLLED_MESSAGE, reviewer_id
                )
            return TraceItem(
                request_id, BulkOutcome.ALREADY_ENROLLED, name, ALREADY_ENROLLED_MESSAGE
            )

        try:
            with transaction(self.db, "approving join request"):
                self._commit_approval(request, review_message, reviewer_id)
        except CapacityExceededError:
            return TraceItem(request_id, BulkOutcome.REJECTED, name, CLASS_FULL_REASON)
        except AlreadyEnrolledError as exc:
            return TraceItem(request_id, BulkOutcome.ALREADY_ENROLLED, name, str(exc))
        except InvalidStateError as exc:
            # Lost a race with another reviewer; report what actually happened.
            current = JoinRequestStatus(self._load_request(request_id).status)
            if current is JoinRequestStatus.APPROVED:
                return TraceItem(
                    request_id, BulkOutcome.ALREADY_ENROLLED, name, "Request was already approved"
                )
            if self.classes.is_enrolled(request.class_id, request.student_id):
                return TraceItem(
                    request_id, BulkOutcome.ALREADY_ENROLLED, name, ALREADY_ENROLLED_MESSAGE
                )
            return TraceItem(request_id, BulkOutcome.REJECTED, name, str(exc))

        return TraceItem(request_id, BulkOutcome.APPROVED, name)

    def bulk_reject(
        self,
        request_ids: List[str],
        review_message: Optional[str],
        reviewer_id: Optional[str] = None,
    ) -> BulkRejectResult:
        """Reject every pending request in ``request_ids``.

        Terminal requests are reported as no-ops and unknown ids as errors.

        Raises:
            ValidationError: If ``request_ids`` is empty or the reason is blank.
        """
        if not request_ids:
            raise ValidationError("Request IDs are required")
        review_message = clean_message(review_message, required=True)

        trace: List[TraceItem] = []
        for request_id in request_ids:
            try:
                request = self._load_request(request_id)
            except NotFoundError as exc:
                trace.append(TraceItem(request_id, BulkOutcome.ERROR, reason=str(exc)))
                continue

            name = student_name(request)
            status = JoinRequestStatus(request.status)
            if status.is_terminal:
                trace.append(
                    TraceItem(request_id, BulkOutcome.NO_OP, name, f"Request already {status.value}")
                )
                continue

            with transaction(self.db, "rejecting join request"):
                moved = self._set_status(
                    request_id, JoinRequestStatus.REJECTED, review_message, reviewer_id
                )
            if moved:
                trace.append(TraceItem(request_id, BulkOutcome.REJECTED, name))
            else:
                current = self._load_request(request_id).status
                trace.append(
                    TraceItem(request_id, BulkOutcome.NO_OP, name, f"Request already {current}")
                )

        result = self.reporter.reject_report(trace)
        logger.info(
            "Bulk reject: %d rejected, %d no-ops, %d errors",
            result.rejected,
            result.no_ops,
            result.errors,
        )
        return result
