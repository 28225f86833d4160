"""Custom exception classes for the Academy Admission service.

This module defines application-specific exceptions following Google Python
Style Guide.
"""

from typing import Optional


class AcademyAdminError(Exception):
    """Base exception for all Academy Admission errors."""

    pass


class NotFoundError(AcademyAdminError):
    """Raised when a batch, class, user or request cannot be found."""

    def __init__(self, kind: str, identifier: str):
        """Initialize the exception.

        Args:
            kind: Human-readable entity kind, e.g. "Batch" or "Join request".
            identifier: The ID that was looked up.
        """
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class InvalidStateError(AcademyAdminError):
    """Raised when an operation is not valid for the current status."""

    pass


class ValidationError(AcademyAdminError):
    """Raised when data validation fails."""

    pass


class CapacityExceededError(AcademyAdminError):
    """Raised when an approval would push a class over its maximum."""

    def __init__(self, class_id: str, current: int, maximum: Optional[int]):
        """Initialize the exception.

        Args:
            class_id: The class that is full.
            current: Enrolled count observed when the approval was refused.
            maximum: The class maximum.
        """
        self.class_id = class_id
        self.current = current
        self.maximum = maximum
        super().__init__(
            f"Class has reached maximum capacity ({current}/{maximum})"
        )


class ConflictError(AcademyAdminError):
    """Raised when a mutation lost a race against a concurrent mutation."""

    pass


class CooldownActiveError(AcademyAdminError):
    """Raised when a student re-requests a class too soon."""

    def __init__(self, minutes_left: int):
        self.minutes_left = minutes_left
        plural = "" if minutes_left == 1 else "s"
        super().__init__(
            f"Please wait {minutes_left} minute{plural} before sending another request"
        )


class InfrastructureError(AcademyAdminError):
    """Raised when storage is unavailable. The caller may retry."""

    pass


class AlreadyEnrolledError(InvalidStateError):
    """Raised when the student already holds a seat in the class."""

    def __init__(self, message: str = "Student is already enrolled in this class"):
        super().__init__(message)
