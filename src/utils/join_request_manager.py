"""Join request intake and listing.

Students ask to join classes here; teachers review what lands here through
``AdmissionController``.
"""

import logging
import math
import secrets
from datetime import timedelta
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from config import (
    ALREADY_ENROLLED_MESSAGE,
    DEFAULT_PAGE_LIMIT,
    JOIN_REQUEST_COOLDOWN_MINUTES,
    OPEN_CLASS_APPROVAL_MESSAGE,
)
from core.database import transaction
from core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    CooldownActiveError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from models.base import as_utc, utcnow
from models.class_model import ClassModel
from models.join_request import JoinRequestModel
from schemas.enums import ClassVisibility, JoinRequestStatus
from schemas.join_request import JoinEligibility
from utils.admission_controller import clean_message
from utils.class_manager import ClassManager
from utils.usage_ledger import validate_pagination
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)

CLOSED_CLASS_REASON = "This class does not accept join requests"
APPROVED_REQUEST_REASON = "Student already has an approved request for this class"


class RequestPage(NamedTuple):
    requests: List[JoinRequestModel]
    total: int
    pages: int


class JoinRequestManager:
    """Creates, lists and cancels class join requests."""

    def __init__(self, db: Session, cooldown_minutes: int = JOIN_REQUEST_COOLDOWN_MINUTES):
        """Initialize JoinRequestManager.

        Args:
            db: SQLAlchemy Session.
            cooldown_minutes: Minimum gap between two requests from the same
                student for the same class.
        """
        self.db = db
        self.cooldown = timedelta(minutes=cooldown_minutes)
        self.classes = ClassManager(db)
        self.users = UserManager(db)

    def get_request(self, request_id: str) -> JoinRequestModel:
        request = (
            self.db.query(JoinRequestModel)
            .filter(JoinRequestModel.request_id == request_id)
            .first()
        )
        if not request:
            raise NotFoundError("Join request", request_id)
        return request

    def _has_approved_request(self, class_id: str, student_id: str) -> bool:
        return (
            self.db.query(JoinRequestModel.request_id)
            .filter(
                JoinRequestModel.class_id == class_id,
                JoinRequestModel.student_id == student_id,
                JoinRequestModel.status == JoinRequestStatus.APPROVED.value,
            )
            .first()
            is not None
        )

    def _cooldown_minutes_left(self, class_id: str, student_id: str) -> int:
        """Whole minutes until the student may request this class again, or 0."""
        latest = (
            self.db.query(JoinRequestModel)
            .filter(
                JoinRequestModel.class_id == class_id,
                JoinRequestModel.student_id == student_id,
            )
            .order_by(JoinRequestModel.created_at.desc())
            .first()
        )
        if not latest:
            return 0
        remaining = as_utc(latest.created_at) + self.cooldown - utcnow()
        if remaining.total_seconds() <= 0:
            return 0
        return math.ceil(remaining.total_seconds() / 60)

    def _is_full(self, class_model: ClassModel) -> bool:
        return (
            class_model.max_students is not None
            and class_model.current_enrolled >= class_model.max_students
        )

    def _load_active_class(self, class_id: str) -> ClassModel:
        class_model = self.classes.get_class(class_id, fresh=True)
        if not class_model.is_active:
            raise InvalidStateError("Class is not active")
        return class_model

    def create_request(
        self,
        student_id: str,
        class_id: str,
        request_message: Optional[str] = None,
    ) -> JoinRequestModel:
        """Submit a join request, or join an open class directly.

        Args:
            student_id: Requesting student.
            class_id: Target class.
            request_message: Optional note for the teacher.

        Returns:
            The created request. For open classes it is already approved.

        Raises:
            NotFoundError: If the class or student does not exist.
            InvalidStateError: If the class is inactive or the student is
                already in it.
            ValidationError: If the class is unlisted or the message is too long.
            CapacityExceededError: If the class is full.
            CooldownActiveError: If the student requested this class too recently.
        """
        request_message = clean_message(request_message, required=False, label="Request message")
        class_model = self._load_active_class(class_id)
        self.users.get_user(student_id)

        if self.classes.is_enrolled(class_id, student_id):
            raise AlreadyEnrolledError()
        if self._has_approved_request(class_id, student_id):
            raise InvalidStateError(APPROVED_REQUEST_REASON)

        visibility = ClassVisibility(class_model.visibility)
        if visibility is ClassVisibility.OPEN:
            return self._join_open_class(class_model, student_id, request_message)
        if visibility is not ClassVisibility.REQUEST_TO_JOIN:
            raise ValidationError(CLOSED_CLASS_REASON)

        if self._is_full(class_model):
            raise CapacityExceededError(
                class_id, class_model.current_enrolled, class_model.max_students
            )
        minutes_left = self._cooldown_minutes_left(class_id, student_id)
        if minutes_left:
            logger.warning(
                "Join request from %s for class %s refused: cooldown %d min",
                student_id,
                class_id,
                minutes_left,
            )
            raise CooldownActiveError(minutes_left)

        request = JoinRequestModel(
            request_id=secrets.token_hex(8),
            class_id=class_id,
            student_id=student_id,
            status=JoinRequestStatus.PENDING.value,
            request_message=request_message,
        )
        with transaction(self.db, "creating join request"):
            self.db.add(request)
        self.db.refresh(request)
        logger.info("Student %s requested to join class %s", student_id, class_id)
        return request

    def _join_open_class(
        self, class_model: ClassModel, student_id: str, request_message: Optional[str]
    ) -> JoinRequestModel:
        class_id = class_model.class_id
        now = utcnow()
        request = JoinRequestModel(
            request_id=secrets.token_hex(8),
            class_id=class_id,
            student_id=student_id,
            status=JoinRequestStatus.APPROVED.value,
            request_message=request_message,
            review_message=OPEN_CLASS_APPROVAL_MESSAGE,
            reviewed_at=now,
        )
        with transaction(self.db, "joining open class"):
            if not self.classes.claim_seat(class_id):
                raise CapacityExceededError(
                    class_id, class_model.current_enrolled, class_model.max_students
                )
            self.db.add(request)
            self.classes.add_enrollment(class_id, student_id, request.request_id)
        self.db.refresh(request)
        logger.info("Student %s joined open class %s", student_id, class_id)
        return request

    def check_eligibility(self, student_id: str, class_id: str) -> JoinEligibility:
        """Report whether the student may request (or directly join) a class.

        Never raises for a refusal; the reason is returned instead.
        """
        class_model = self.classes.get_class(class_id, fresh=True)
        if not class_model.is_active:
            return JoinEligibility(can_request=False, reason="Class is not active")
        if self._is_full(class_model):
            return JoinEligibility(
                can_request=False, reason="Class has reached maximum capacity and is now full"
            )

        visibility = ClassVisibility(class_model.visibility)
        if visibility is ClassVisibility.UNLISTED:
            return JoinEligibility(can_request=False, reason=CLOSED_CLASS_REASON)
        if self.classes.is_enrolled(class_id, student_id):
            return JoinEligibility(can_request=False, reason=ALREADY_ENROLLED_MESSAGE)
        if self._has_approved_request(class_id, student_id):
            return JoinEligibility(can_request=False, reason=APPROVED_REQUEST_REASON)
        if visibility is ClassVisibility.OPEN:
            return JoinEligibility(can_request=True, is_open_class=True)

        minutes_left = self._cooldown_minutes_left(class_id, student_id)
        if minutes_left:
            return JoinEligibility(
                can_request=False,
                reason=str(CooldownActiveError(minutes_left)),
                minutes_left=minutes_left,
            )

        pending = (
            self.db.query(JoinRequestModel)
            .filter(
                JoinRequestModel.class_id == class_id,
                JoinRequestModel.student_id == student_id,
                JoinRequestModel.status == JoinRequestStatus.PENDING.value,
            )
            .count()
        )
        return JoinEligibility(can_request=True, pending_requests_count=pending)

    def list_pending(self, class_id: str) -> List[JoinRequestModel]:
        """Pending requests for a class, oldest first."""
        self.classes.get_class(class_id)
        return (
            self.db.query(JoinRequestModel)
            .filter(
                JoinRequestModel.class_id == class_id,
                JoinRequestModel.status == JoinRequestStatus.PENDING.value,
            )
            .order_by(JoinRequestModel.created_at.asc())
            .all()
        )

    def _page(self, query, page: int, limit: int) -> RequestPage:
        validate_pagination(page, limit)
        total = query.order_by(None).count()
        requests = (
            query.order_by(JoinRequestModel.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return RequestPage(requests=requests, total=total, pages=math.ceil(total / limit))

    def list_history(
        self,
        class_id: str,
        status: Optional[JoinRequestStatus] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> RequestPage:
        """All requests for a class, newest first, optionally by status."""
        self.classes.get_class(class_id)
        query = self.db.query(JoinRequestModel).filter(JoinRequestModel.class_id == class_id)
        if status:
            query = query.filter(JoinRequestModel.status == JoinRequestStatus(status).value)
        return self._page(query, page, limit)

    def list_for_student(
        self,
        student_id: str,
        status: Optional[JoinRequestStatus] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> RequestPage:
        self.users.get_user(student_id)
        query = self.db.query(JoinRequestModel).filter(
            JoinRequestModel.student_id == student_id
        )
        if status:
            query = query.filter(JoinRequestModel.status == JoinRequestStatus(status).value)
        return self._page(query, page, limit)

    def cancel_request(self, request_id: str, student_id: str) -> None:
        """Delete a student's own pending request.

        Raises:
            NotFoundError: If no such request belongs to the student.
            InvalidStateError: If the request was already reviewed.
        """
        request = self.get_request(request_id)
        if request.student_id != student_id:
            raise NotFoundError("Join request", request_id)
        status = JoinRequestStatus(request.status)
        if status.is_terminal:
            raise InvalidStateError(f"Cannot cancel a request that is already {status.value}")

        with transaction(self.db, "cancelling join request"):
            deleted = (
                self.db.query(JoinRequestModel)
                .filter(
                    JoinRequestModel.request_id == request_id,
                    JoinRequestModel.status == JoinRequestStatus.PENDING.value,
                )
                .delete(synchronize_session=False)
            )
            if not deleted:
                raise InvalidStateError("This request has already been processed")
        logger.info("Student %s cancelled join request %s", student_id, request_id)
