"""
Tests for single and bulk admission of class join requests.
"""
import threading

import pytest

from config import ALREADY_ENROLLED_MESSAGE, AUTO_REJECT_SIBLING_MESSAGE
from core.database import transaction
from core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from schemas.enums import BulkOutcome, JoinRequestStatus
from utils.admission_controller import (
    CLASS_FULL_REASON,
    DIFFERENT_CLASS_REASON,
    AdmissionController,
)
from utils.class_manager import ClassManager


def _enroll_directly(db, class_model, student):
    classes = ClassManager(db)
    with transaction(db, "test enrollment"):
        assert classes.claim_seat(class_model.class_id)
        classes.add_enrollment(class_model.class_id, student.user_id)


class TestApprove:

    def test_approve_enrolls_student(self, make_class, make_request, admission, db):
        class_model = make_class(max_students=5)
        request = make_request(class_model)

        approved = admission.approve(request.request_id, "Welcome!", "teacher-1")

        assert approved.status == JoinRequestStatus.APPROVED.value
        assert approved.review_message == "Welcome!"
        assert approved.reviewed_by == "teacher-1"
        assert approved.reviewed_at is not None
        classes = ClassManager(db)
        assert classes.is_enrolled(class_model.class_id, request.student_id)
        assert classes.get_capacity(class_model.class_id).current == 1

    def test_approve_rejects_sibling_requests(self, make_class, make_request, make_user, admission, join_requests):
        class_model = make_class()
        student = make_user()
        first = make_request(class_model, student)
        second = make_request(class_model, student)

        admission.approve(second.request_id)

        sibling = join_requests.get_request(first.request_id)
        assert sibling.status == JoinRequestStatus.REJECTED.value
        assert sibling.review_message == AUTO_REJECT_SIBLING_MESSAGE

    def test_approve_processed_request(self, make_class, make_request, admission):
        request = make_request(make_class())
        admission.approve(request.request_id)

        with pytest.raises(InvalidStateError):
            admission.approve(request.request_id)

    def test_approve_unknown_request(self, admission):
        with pytest.raises(NotFoundError):
            admission.approve("missing")

    def test_full_class_leaves_request_pending(self, make_class, make_request, make_user, admission, db, join_requests):
        class_model = make_class(max_students=1)
        request = make_request(class_model)
        _enroll_directly(db, class_model, make_user())

        with pytest.raises(CapacityExceededError) as exc_info:
            admission.approve(request.request_id)

        assert "maximum capacity (1/1)" in str(exc_info.value)
        assert join_requests.get_request(request.request_id).status == JoinRequestStatus.PENDING.value
        assert admission.get_capacity(class_model.class_id).current == 1

    def test_already_enrolled_student(self, make_class, make_request, make_user, admission, db, join_requests):
        class_model = make_class()
        student = make_user()
        request = make_request(class_model, student)
        _enroll_directly(db, class_model, student)

        with pytest.raises(AlreadyEnrolledError, match=ALREADY_ENROLLED_MESSAGE):
            admission.approve(request.request_id)
        assert join_requests.get_request(request.request_id).status == JoinRequestStatus.PENDING.value

    def test_review_message_too_long(self, make_class, make_request, admission):
        request = make_request(make_class())
        with pytest.raises(ValidationError):
            admission.approve(request.request_id, "x" * 501)


class TestReject:

    def test_reject_requires_reason(self, make_class, make_request, admission):
        request = make_request(make_class())
        with pytest.raises(ValidationError):
            admission.reject(request.request_id, None)
        with pytest.raises(ValidationError):
            admission.reject(request.request_id, "   ")

    def test_reject(self, make_class, make_request, admission):
        request = make_request(make_class())

        rejected = admission.reject(request.request_id, "Class is for seniors", "teacher-1")

        assert rejected.status == JoinRequestStatus.REJECTED.value
        assert rejected.review_message == "Class is for seniors"

    def test_reject_is_terminal(self, make_class, make_request, admission):
        request = make_request(make_class())
        admission.reject(request.request_id, "No")

        with pytest.raises(InvalidStateError):
            admission.reject(request.request_id, "No again")
        with pytest.raises(InvalidStateError):
            admission.approve(request.request_id)


class TestBulkApprove:

    @pytest.fixture
    def nearly_full(self, make_class, make_request, admission):
        """A class with two seats, one already taken, and three pending requests."""
        class_model = make_class(max_students=2)
        admission.approve(make_request(class_model).request_id)
        requests = [make_request(class_model) for _ in range(3)]
        return class_model, requests

    def test_capacity_stops_approvals(self, nearly_full, admission, join_requests):
        class_model, requests = nearly_full
        ids = [r.request_id for r in requests]

        result = admission.bulk_approve(ids)

        assert (result.approved, result.rejected, result.already_enrolled) == (1, 2, 0)
        assert result.message == "Bulk operation completed: 1 approved, 2 rejected (class is full)"
        assert result.capacity.current == 2
        assert result.capacity.max == 2
        assert result.capacity.available == 0
        assert [s.request_id for s in result.details.approved_students] == [ids[0]]
        assert all(s.reason == CLASS_FULL_REASON for s in result.details.rejected_students)
        # Capacity refusals stay pending so they can be retried later.
        for request_id in ids[1:]:
            assert join_requests.get_request(request_id).status == JoinRequestStatus.PENDING.value

    def test_counts_always_cover_input(self, make_class, make_request, admission):
        class_model = make_class(max_students=2)
        a, b, c = (make_request(class_model) for _ in range(3))
        ids = [a.request_id, "missing", a.request_id, b.request_id, c.request_id]

        result = admission.bulk_approve(ids)

        assert result.approved + result.rejected + result.already_enrolled == len(ids)
        assert result.approved == 2
        assert result.already_enrolled == 1

    def test_duplicate_id_reported_as_already_enrolled(self, make_class, make_request, admission):
        request = make_request(make_class())

        result = admission.bulk_approve([request.request_id, request.request_id])

        assert (result.approved, result.already_enrolled) == (1, 1)

    def test_sibling_in_same_call_reported_as_already_enrolled(self, make_class, make_request, make_user, admission, join_requests):
        class_model = make_class(max_students=5)
        student = make_user()
        first = make_request(class_model, student)
        second = make_request(class_model, student)

        result = admission.bulk_approve([first.request_id, second.request_id])

        assert (result.approved, result.rejected, result.already_enrolled) == (1, 0, 1)
        item = result.details.already_enrolled_students[0]
        assert item.request_id == second.request_id
        assert item.reason == ALREADY_ENROLLED_MESSAGE
        assert join_requests.get_request(second.request_id).status == JoinRequestStatus.REJECTED.value

    def test_unknown_id_is_rejected(self, make_class, make_request, admission):
        request = make_request(make_class())

        result = admission.bulk_approve(["missing", request.request_id])

        assert result.approved == 1
        assert result.details.rejected_students[0].request_id == "missing"
        assert "not found" in result.details.rejected_students[0].reason

    def test_other_class_is_rejected(self, make_class, make_request, admission, join_requests):
        first = make_request(make_class(name="Chess 101"))
        other = make_request(make_class(name="Chess 201"))

        result = admission.bulk_approve([first.request_id, other.request_id])

        assert result.approved == 1
        assert result.details.rejected_students[0].reason == DIFFERENT_CLASS_REASON
        assert join_requests.get_request(other.request_id).status == JoinRequestStatus.PENDING.value

    def test_enrolled_student_pending_request(self, make_class, make_request, make_user, admission, db, join_requests):
        class_model = make_class()
        student = make_user()
        request = make_request(class_model, student)
        _enroll_directly(db, class_model, student)

        result = admission.bulk_approve([request.request_id])

        assert result.already_enrolled == 1
        stored = join_requests.get_request(request.request_id)
        assert stored.status == JoinRequestStatus.REJECTED.value
        assert stored.review_message == ALREADY_ENROLLED_MESSAGE

    def test_unlimited_class_reports_no_maximum(self, make_class, make_request, admission):
        class_model = make_class()
        ids = [make_request(class_model).request_id for _ in range(3)]

        result = admission.bulk_approve(ids)

        assert result.approved == 3
        assert result.capacity.max is None
        assert result.capacity.available is None
        assert result.message == "Bulk operation completed: 3 approved"

    def test_student_names_in_details(self, make_class, make_request, make_user, admission):
        student = make_user("Lucia", "Fernandez")
        request = make_request(make_class(), student)

        result = admission.bulk_approve([request.request_id])

        assert result.details.approved_students[0].student_name == "Lucia Fernandez"

    def test_empty_input(self, admission):
        with pytest.raises(ValidationError):
            admission.bulk_approve([])


class TestBulkReject:

    def test_mixed_outcomes(self, make_class, make_request, admission, join_requests):
        class_model = make_class()
        pending = make_request(class_model)
        approved = make_request(class_model)
        admission.approve(approved.request_id)

        result = admission.bulk_reject(
            [pending.request_id, approved.request_id, "missing"], "Roster closed"
        )

        assert (result.rejected, result.no_ops, result.errors) == (1, 1, 1)
        assert result.message == (
            "Bulk rejection completed: 1 request(s) rejected, 1 already processed, 1 failed"
        )
        stored = join_requests.get_request(pending.request_id)
        assert stored.status == JoinRequestStatus.REJECTED.value
        assert stored.review_message == "Roster closed"
        assert result.details.no_op_requests[0].outcome == BulkOutcome.NO_OP

    def test_reason_required(self, make_class, make_request, admission):
        request = make_request(make_class())
        with pytest.raises(ValidationError):
            admission.bulk_reject([request.request_id], "")


def test_concurrent_approvals_never_overfill(make_class, make_request, session_factory):
    class_model = make_class(max_students=1)
    ids = [make_request(class_model).request_id for _ in range(3)]
    barrier = threading.Barrier(len(ids))
    outcomes = []
    lock = threading.Lock()

    def approve(request_id):
        session = session_factory()
        try:
            barrier.wait()
            AdmissionController(session).approve(request_id)
            outcome = "approved"
        except CapacityExceededError:
            outcome = "full"
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=approve, args=(request_id,)) for request_id in ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["approved", "full", "full"]
    session = session_factory()
    try:
        capacity = ClassManager(session).get_capacity(class_model.class_id)
        assert capacity.current == 1
    finally:
        session.close()
