"""Signup code redemption route."""

from fastapi import APIRouter, status

from api.errors import to_http_exception
from core.dependencies import SignupCodeRegistryDep
from core.exceptions import AcademyAdminError
from schemas.usage_log import RedeemSignupCodeRequest, UsageLogEntry

router = APIRouter(prefix="/api/signup-codes", tags=["SignupCode"])


@router.post(
    "/redeem",
    response_model=UsageLogEntry,
    status_code=status.HTTP_201_CREATED,
    summary="使用注册码注册",
)
def redeem_signup_code(
    req: RedeemSignupCodeRequest,
    registry: SignupCodeRegistryDep,
) -> UsageLogEntry:
    """Consume one use of a signup code.

    Failed attempts are still written to the usage log before the error is
    returned.

    Args:
        req: Code plus the registering user's name and e-mail.
        registry: Injected SignupCodeRegistry instance.

    Returns:
        The successful usage log entry.

    Raises:
        HTTPException: 400 with the refusal reason.
    """
    try:
        entry = registry.redeem(req.signup_code, req.user_name, req.user_email)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return UsageLogEntry.model_validate(entry)
