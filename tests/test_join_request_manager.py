"""
Tests for join request intake, eligibility, listings and cancellation.
"""
import pytest

from config import OPEN_CLASS_APPROVAL_MESSAGE
from core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    CooldownActiveError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from schemas.enums import ClassVisibility, JoinRequestStatus
from utils.class_manager import ClassManager
from utils.join_request_manager import JoinRequestManager


class TestCreateRequest:

    def test_request_to_join_creates_pending(self, make_class, make_user, join_requests):
        class_model = make_class()
        student = make_user()

        request = join_requests.create_request(
            student.user_id, class_model.class_id, "  I play at club level  "
        )

        assert request.status == JoinRequestStatus.PENDING.value
        assert request.request_message == "I play at club level"

    def test_open_class_joins_directly(self, make_class, make_user, join_requests, db):
        class_model = make_class(visibility=ClassVisibility.OPEN, max_students=3)
        student = make_user()

        request = join_requests.create_request(student.user_id, class_model.class_id)

        assert request.status == JoinRequestStatus.APPROVED.value
        assert request.review_message == OPEN_CLASS_APPROVAL_MESSAGE
        classes = ClassManager(db)
        assert classes.is_enrolled(class_model.class_id, student.user_id)
        assert classes.get_capacity(class_model.class_id).current == 1

    def test_full_open_class(self, make_class, make_user, join_requests):
        class_model = make_class(visibility=ClassVisibility.OPEN, max_students=1)
        join_requests.create_request(make_user().user_id, class_model.class_id)

        with pytest.raises(CapacityExceededError):
            join_requests.create_request(make_user().user_id, class_model.class_id)

    def test_full_request_class(self, make_class, make_request, make_user, join_requests, admission):
        class_model = make_class(max_students=1)
        admission.approve(make_request(class_model).request_id)

        with pytest.raises(CapacityExceededError):
            join_requests.create_request(make_user().user_id, class_model.class_id)

    def test_unlisted_class_refuses(self, make_class, make_user, join_requests):
        class_model = make_class(visibility=ClassVisibility.UNLISTED)
        with pytest.raises(ValidationError, match="does not accept join requests"):
            join_requests.create_request(make_user().user_id, class_model.class_id)

    def test_enrolled_student_refused(self, make_class, make_user, join_requests):
        class_model = make_class(visibility=ClassVisibility.OPEN)
        student = make_user()
        join_requests.create_request(student.user_id, class_model.class_id)

        with pytest.raises(AlreadyEnrolledError):
            join_requests.create_request(student.user_id, class_model.class_id)

    def test_unknown_class_or_student(self, make_class, make_user, join_requests):
        with pytest.raises(NotFoundError):
            join_requests.create_request(make_user().user_id, "missing")
        with pytest.raises(NotFoundError):
            join_requests.create_request("ghost", make_class().class_id)

    def test_inactive_class(self, make_class, make_user, join_requests, db):
        class_model = make_class()
        class_model.is_active = False
        db.commit()

        with pytest.raises(InvalidStateError):
            join_requests.create_request(make_user().user_id, class_model.class_id)

    def test_message_too_long(self, make_class, make_user, join_requests):
        with pytest.raises(ValidationError):
            join_requests.create_request(make_user().user_id, make_class().class_id, "x" * 501)

    def test_cooldown(self, make_class, make_user, db):
        manager = JoinRequestManager(db, cooldown_minutes=10)
        class_model = make_class()
        student = make_user()
        manager.create_request(student.user_id, class_model.class_id)

        with pytest.raises(CooldownActiveError) as exc_info:
            manager.create_request(student.user_id, class_model.class_id)

        assert exc_info.value.minutes_left == 10
        assert "10 minutes" in str(exc_info.value)


class TestEligibility:

    def test_open_class(self, make_class, make_user, join_requests):
        class_model = make_class(visibility=ClassVisibility.OPEN)
        result = join_requests.check_eligibility(make_user().user_id, class_model.class_id)
        assert result.can_request is True
        assert result.is_open_class is True

    def test_pending_count(self, make_class, make_user, join_requests):
        class_model = make_class()
        student = make_user()
        join_requests.create_request(student.user_id, class_model.class_id)
        join_requests.create_request(student.user_id, class_model.class_id)

        result = join_requests.check_eligibility(student.user_id, class_model.class_id)

        assert result.can_request is True
        assert result.pending_requests_count == 2

    def test_cooldown_reported(self, make_class, make_user, db):
        manager = JoinRequestManager(db, cooldown_minutes=10)
        class_model = make_class()
        student = make_user()
        manager.create_request(student.user_id, class_model.class_id)

        result = manager.check_eligibility(student.user_id, class_model.class_id)

        assert result.can_request is False
        assert result.minutes_left == 10

    def test_full_and_unlisted(self, make_class, make_user, join_requests):
        full = make_class(visibility=ClassVisibility.OPEN, max_students=1)
        join_requests.create_request(make_user().user_id, full.class_id)
        unlisted = make_class(visibility=ClassVisibility.UNLISTED)
        student = make_user()

        assert join_requests.check_eligibility(student.user_id, full.class_id).can_request is False
        assert join_requests.check_eligibility(student.user_id, unlisted.class_id).can_request is False


class TestListings:

    def test_pending_oldest_first(self, make_class, make_request, join_requests, admission):
        class_model = make_class()
        first, second, third = (make_request(class_model) for _ in range(3))
        admission.reject(second.request_id, "No")

        pending = join_requests.list_pending(class_model.class_id)

        assert [r.request_id for r in pending] == [first.request_id, third.request_id]

    def test_history_status_filter(self, make_class, make_request, join_requests, admission):
        class_model = make_class()
        requests = [make_request(class_model) for _ in range(3)]
        admission.approve(requests[0].request_id)

        approved = join_requests.list_history(class_model.class_id, JoinRequestStatus.APPROVED)
        everything = join_requests.list_history(class_model.class_id, limit=2)

        assert approved.total == 1
        assert everything.total == 3
        assert everything.pages == 2
        assert len(everything.requests) == 2

    def test_for_student(self, make_class, make_user, join_requests):
        student = make_user()
        join_requests.create_request(student.user_id, make_class(name="A").class_id)
        join_requests.create_request(student.user_id, make_class(name="B").class_id)

        page = join_requests.list_for_student(student.user_id)

        assert page.total == 2
        assert {r.student_id for r in page.requests} == {student.user_id}


class TestCancel:

    def test_cancel_own_pending(self, make_class, make_request, join_requests):
        request = make_request(make_class())
        request_id, student_id = request.request_id, request.student_id

        join_requests.cancel_request(request_id, student_id)

        with pytest.raises(NotFoundError):
            join_requests.get_request(request_id)

    def test_cannot_cancel_someone_elses(self, make_class, make_request, join_requests):
        request = make_request(make_class())
        with pytest.raises(NotFoundError):
            join_requests.cancel_request(request.request_id, "someone-else")

    def test_cannot_cancel_reviewed(self, make_class, make_request, join_requests, admission):
        request = make_request(make_class())
        admission.approve(request.request_id)

        with pytest.raises(InvalidStateError):
            join_requests.cancel_request(request.request_id, request.student_id)
