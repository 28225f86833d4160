"""
Tests for batch signup codes: issue, reset, toggle and redemption.
"""
from datetime import datetime, timedelta

import pytest
import pytz

from core.exceptions import InvalidStateError, NotFoundError, ValidationError
from models.base import as_utc
from schemas.enums import DeletionStatus, RegistrationStatus, SignupCodeAction
from utils.batch_manager import BatchManager
from utils.signup_code_registry import (
    BATCH_FULL_REASON,
    INVALID_CODE_REASON,
    SignupCodeRegistry,
)
from utils.usage_ledger import UsageLedger


@pytest.fixture
def registry(db):
    return SignupCodeRegistry(db)


class TestIssue:
    """A new batch gets exactly one active code."""

    def test_batch_creation_issues_code(self, make_batch, registry):
        batch = make_batch()
        row = registry.get_status(batch.batch_id)

        assert len(row.code) == 8
        assert row.code == row.code.upper()
        assert row.is_active is True
        assert row.usage_count == 0
        assert row.reset_count == 0

    def test_initial_event_is_recorded(self, make_batch, db):
        batch = make_batch()
        events = UsageLedger(db).list_events(batch.batch_id)

        assert [e.action for e in events] == [SignupCodeAction.ACTIVATED.value]
        assert events[0].reason == "Initial creation"
        assert events[0].performed_by == "admin-1"

    def test_codes_are_unique_across_batches(self, make_batch, registry):
        codes = {registry.get_status(make_batch(f"Batch {i}").batch_id).code for i in range(5)}
        assert len(codes) == 5

    def test_batch_validation(self, db):
        manager = BatchManager(db)
        with pytest.raises(ValidationError):
            manager.create_batch("", "2026-2027")
        with pytest.raises(ValidationError):
            manager.create_batch("x" * 101, "2026-2027")
        with pytest.raises(ValidationError):
            manager.create_batch("Batch", "2026-2027", has_student_limit=True, max_students=0)
        with pytest.raises(ValidationError):
            manager.create_batch("Batch", "2026-2027", code_max_usage=0)
        with pytest.raises(ValidationError):
            manager.create_batch(
                "Batch", "2026-2027", code_expires_at=datetime(2020, 1, 1, tzinfo=pytz.utc)
            )
        assert manager.list_batches() == []

    def test_code_limits_at_creation(self, db, registry):
        expires_at = datetime(2030, 1, 1, tzinfo=pytz.utc)
        batch = BatchManager(db).create_batch(
            "Trial Week", "2026-2027", code_max_usage=3, code_expires_at=expires_at
        )

        row = registry.get_status(batch.batch_id)

        assert (row.max_usage, row.remaining_usage) == (3, 3)
        assert as_utc(row.expires_at) == expires_at


class TestReset:

    def test_reset_replaces_value_and_zeroes_usage(self, make_batch, registry):
        batch = make_batch()
        old_code = registry.get_status(batch.batch_id).code
        registry.redeem(old_code, "Ana Diaz", "ana@example.com")

        row = registry.reset_code(batch.batch_id, reason="Leaked in group chat", performed_by="admin-2")

        assert row.code != old_code
        assert row.usage_count == 0
        assert row.is_active is True
        assert row.reset_count == 1
        assert row.reset_reason == "Leaked in group chat"
        assert row.reset_at is not None

    def test_reset_is_audited_with_both_values(self, make_batch, registry, db):
        batch = make_batch()
        old_code = registry.get_status(batch.batch_id).code
        new_code = registry.reset_code(batch.batch_id, performed_by="admin-2").code

        event = UsageLedger(db).list_events(batch.batch_id)[-1]
        assert event.action == SignupCodeAction.RESET.value
        assert event.old_code == old_code
        assert event.new_code == new_code
        assert event.performed_by == "admin-2"

    def test_reset_reactivates_inactive_code(self, make_batch, registry):
        batch = make_batch()
        registry.toggle_status(batch.batch_id)

        row = registry.reset_code(batch.batch_id)

        assert row.is_active is True
        assert row.deactivation_reason is None

    def test_superseded_code_cannot_be_redeemed(self, make_batch, registry, db):
        batch = make_batch()
        old_code = registry.get_status(batch.batch_id).code
        registry.reset_code(batch.batch_id)

        with pytest.raises(ValidationError, match=INVALID_CODE_REASON):
            registry.redeem(old_code, "Ben Ruiz", "ben@example.com")

        page = UsageLedger(db).query()
        assert page.total == 1
        assert page.entries[0].registration_status == RegistrationStatus.FAILED.value
        assert page.entries[0].failure_reason == INVALID_CODE_REASON

    def test_unknown_batch(self, registry):
        with pytest.raises(NotFoundError):
            registry.reset_code("missing")

    def test_reason_too_long(self, make_batch, registry):
        batch = make_batch()
        with pytest.raises(ValidationError):
            registry.reset_code(batch.batch_id, reason="x" * 201)


class TestToggle:

    def test_toggle_twice_restores_state(self, make_batch, registry):
        batch = make_batch()
        before = registry.get_status(batch.batch_id)
        code, usage = before.code, before.usage_count

        off = registry.toggle_status(batch.batch_id, reason="Term paused")
        assert off.is_active is False
        assert off.deactivation_reason == "Term paused"

        on = registry.toggle_status(batch.batch_id)
        assert on.is_active is True
        assert on.code == code
        assert on.usage_count == usage
        assert on.deactivated_at is None

    def test_toggle_events(self, make_batch, registry, db):
        batch = make_batch()
        registry.toggle_status(batch.batch_id)
        registry.toggle_status(batch.batch_id)

        actions = [e.action for e in UsageLedger(db).list_events(batch.batch_id)]
        assert actions == ["activated", "deactivated", "activated"]


class TestRedeem:

    def test_successful_redemption(self, make_batch, registry, db):
        batch = make_batch()
        code = registry.get_status(batch.batch_id).code

        entry = registry.redeem(code.lower(), "Cara Lee", "Cara@Example.com")

        assert entry.registration_status == RegistrationStatus.SUCCESSFUL.value
        assert entry.batch_id == batch.batch_id
        assert entry.user_email == "cara@example.com"
        assert registry.get_status(batch.batch_id).usage_count == 1
        assert BatchManager(db).get_batch(batch.batch_id).current_students == 1

    def test_inactive_code(self, make_batch, registry):
        batch = make_batch()
        code = registry.get_status(batch.batch_id).code
        registry.toggle_status(batch.batch_id)

        with pytest.raises(ValidationError, match="Signup code is deactivated"):
            registry.redeem(code, "Dan Wu", "dan@example.com")

    def test_unknown_code_is_logged(self, registry, db):
        with pytest.raises(ValidationError, match=INVALID_CODE_REASON):
            registry.redeem("NOPE1234", "Eve Ito", "eve@example.com")

        entry = UsageLedger(db).query().entries[0]
        assert entry.batch_id is None
        assert entry.registration_status == RegistrationStatus.FAILED.value

    def test_full_batch(self, make_batch, registry):
        batch = make_batch(max_students=1)
        code = registry.get_status(batch.batch_id).code
        registry.redeem(code, "Fay Ong", "fay@example.com")

        with pytest.raises(ValidationError, match=BATCH_FULL_REASON):
            registry.redeem(code, "Gus Paz", "gus@example.com")
        assert registry.get_status(batch.batch_id).usage_count == 1

    def test_usage_limit(self, db, registry):
        batch = BatchManager(db).create_batch("Trial Week", "2026-2027", code_max_usage=1)
        code = registry.get_status(batch.batch_id).code
        registry.redeem(code, "Jon Bay", "jon@example.com")

        with pytest.raises(ValidationError, match="usage limit reached"):
            registry.redeem(code, "Kim Oh", "kim@example.com")
        row = registry.get_status(batch.batch_id)
        assert (row.usage_count, row.remaining_usage) == (1, 0)

    def test_expired_code(self, db, registry):
        expires_at = datetime.now(pytz.utc) + timedelta(days=1)
        batch = BatchManager(db).create_batch("Trial Week", "2026-2027", code_expires_at=expires_at)
        row = registry.get_status(batch.batch_id)
        row.expires_at = datetime.now(pytz.utc) - timedelta(minutes=1)
        db.commit()

        with pytest.raises(ValidationError, match="Signup code has expired"):
            registry.redeem(row.code, "Lia Fox", "lia@example.com")
        assert registry.get_status(batch.batch_id).usage_count == 0

    def test_blank_input(self, registry):
        with pytest.raises(ValidationError):
            registry.redeem("  ", "Hal", "hal@example.com")


class TestBatchDeletion:

    def test_mark_for_deletion_deactivates_code(self, make_batch, registry, db):
        batch = make_batch()
        code = registry.get_status(batch.batch_id).code

        batch = BatchManager(db).mark_for_deletion(batch.batch_id, reason="Merged")

        assert batch.deletion_status == DeletionStatus.DRAFT_DELETION.value
        row = registry.get_status(batch.batch_id)
        assert row.is_active is False
        assert row.deactivation_reason == "Batch marked for deletion"
        with pytest.raises(ValidationError, match=INVALID_CODE_REASON):
            registry.redeem(code, "Ivy", "ivy@example.com")

    def test_permanent_delete_requires_draft(self, make_batch, db, registry):
        manager = BatchManager(db)
        batch = make_batch()
        with pytest.raises(InvalidStateError):
            manager.permanently_delete(batch.batch_id)

        manager.mark_for_deletion(batch.batch_id)
        deleted = manager.permanently_delete(batch.batch_id, performed_by="admin-1")

        assert deleted.deletion_status == DeletionStatus.PERMANENTLY_DELETED.value
        with pytest.raises(NotFoundError):
            registry.get_status(batch.batch_id)
        assert batch.batch_id not in [b.batch_id for b in manager.list_batches()]
