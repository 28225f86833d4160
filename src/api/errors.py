"""Translation of domain exceptions into HTTP errors."""

import logging

from fastapi import HTTPException, status

from core.exceptions import (
    AcademyAdminError,
    CapacityExceededError,
    ConflictError,
    CooldownActiveError,
    InfrastructureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (CapacityExceededError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (CooldownActiveError, status.HTTP_429_TOO_MANY_REQUESTS),
    (InfrastructureError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: AcademyAdminError) -> HTTPException:
    """Map a domain exception to an HTTPException carrying its message."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    logger.error("Unmapped domain error: %r", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
    )
