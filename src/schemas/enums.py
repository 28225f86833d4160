"""Status enums and their transition rules.

Statuses are stored as plain strings; these enums are the only place that
decides which transitions are legal.
"""

from enum import Enum
from typing import Dict, FrozenSet

from core.exceptions import InvalidStateError


class JoinRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not JoinRequestStatus.PENDING

    def can_transition_to(self, target: "JoinRequestStatus") -> bool:
        return target in _JOIN_REQUEST_TRANSITIONS[self]

    def transition_to(self, target: "JoinRequestStatus") -> "JoinRequestStatus":
        """Return ``target`` if the move is legal, else raise InvalidStateError."""
        if not self.can_transition_to(target):
            raise InvalidStateError(
                f"This request has already been processed (status: {self.value})"
            )
        return target


_JOIN_REQUEST_TRANSITIONS: Dict[JoinRequestStatus, FrozenSet[JoinRequestStatus]] = {
    JoinRequestStatus.PENDING: frozenset(
        {JoinRequestStatus.APPROVED, JoinRequestStatus.REJECTED}
    ),
    JoinRequestStatus.APPROVED: frozenset(),
    JoinRequestStatus.REJECTED: frozenset(),
}


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    def transition_to(self, target: "RegistrationStatus") -> "RegistrationStatus":
        if self is not RegistrationStatus.PENDING or target is RegistrationStatus.PENDING:
            raise InvalidStateError(
                f"Usage log entry cannot move from {self.value} to {target.value}"
            )
        return target


class SignupCodeAction(str, Enum):
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    RESET = "reset"

    @classmethod
    def for_active_flag(cls, is_active: bool) -> "SignupCodeAction":
        return cls.ACTIVATED if is_active else cls.DEACTIVATED


class ClassVisibility(str, Enum):
    OPEN = "open"
    UNLISTED = "unlisted"
    REQUEST_TO_JOIN = "request_to_join"


class DeletionStatus(str, Enum):
    ACTIVE = "active"
    DRAFT_DELETION = "draft_deletion"
    PERMANENTLY_DELETED = "permanently_deleted"


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class BulkOutcome(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    ALREADY_ENROLLED = "already_enrolled"
    NO_OP = "no_op"
    ERROR = "error"
