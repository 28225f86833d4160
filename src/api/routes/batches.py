"""Batch and signup code administration routes."""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from api.errors import to_http_exception
from config import DEFAULT_PAGE_LIMIT
from core.dependencies import BatchManagerDep, SignupCodeRegistryDep, UsageLedgerDep
from core.exceptions import AcademyAdminError, ValidationError
from schemas.batch import (
    Batch,
    CreateBatchRequest,
    ResetSignupCodeResponse,
    SignupCodeEvent,
    SignupCodeHistory,
    SignupCodeStatus,
    ToggleSignupCodeResponse,
)
from schemas.common import Pagination, ReasonRequest
from schemas.enums import RegistrationStatus
from schemas.usage_log import ActivityLogResponse, UsageLogEntry, UsageLogFilters
from utils.usage_ledger import parse_date_bound

router = APIRouter(prefix="/api/batches", tags=["Batch"])


def _split(value: Optional[str]) -> List[str]:
    """Split a comma-separated query value, dropping blanks and 'all'."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip() and part.strip() != "all"]


def _parse_statuses(value: Optional[str]) -> List[RegistrationStatus]:
    statuses = []
    for part in _split(value):
        try:
            statuses.append(RegistrationStatus(part))
        except ValueError:
            raise ValidationError(f"Unknown registration status '{part}'")
    return statuses


@router.post(
    "",
    response_model=Batch,
    status_code=status.HTTP_201_CREATED,
    summary="创建批次并生成注册码",
)
def create_batch(req: CreateBatchRequest, batch_manager: BatchManagerDep) -> Batch:
    try:
        batch = batch_manager.create_batch(
            batch_name=req.batch_name,
            academic_year=req.academic_year,
            description=req.description,
            has_student_limit=req.has_student_limit,
            max_students=req.max_students,
            created_by=req.created_by,
            code_max_usage=req.code_max_usage,
            code_expires_at=req.code_expires_at,
        )
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return Batch.model_validate(batch)


@router.get("", response_model=List[Batch], summary="列出批次")
def list_batches(
    batch_manager: BatchManagerDep,
    include_deleted: bool = False,
) -> List[Batch]:
    return [Batch.model_validate(b) for b in batch_manager.list_batches(include_deleted)]


@router.get(
    "/activity-logs",
    response_model=ActivityLogResponse,
    summary="查询注册码使用记录",
)
def get_activity_logs(
    ledger: UsageLedgerDep,
    batch_id: Optional[str] = Query(default=None, description="Comma-separated batch IDs."),
    status_filter: Optional[str] = Query(
        default=None, alias="status", description="Comma-separated registration statuses."
    ),
    start_date: Optional[str] = None,
    end_date: Optional[str] = Query(
        default=None, description="A bare date includes the whole day."
    ),
    search: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> ActivityLogResponse:
    """Filtered, paginated usage log with summary statistics.

    Statistics are computed from the same filters as the listing, so
    ``stats.total`` always equals ``pagination.total``.

    Raises:
        HTTPException: 400 if a date, status or pagination value is invalid.
    """
    try:
        filters = UsageLogFilters(
            batch_ids=_split(batch_id),
            statuses=_parse_statuses(status_filter),
            start_date=parse_date_bound(start_date),
            end_date=parse_date_bound(end_date, end_of_day=True),
            search=search,
        )
        result = ledger.query(filters, page=page, limit=limit)
        stats = ledger.stats(filters)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return ActivityLogResponse(
        logs=[UsageLogEntry.model_validate(e) for e in result.entries],
        stats=stats,
        pagination=Pagination.build(page, limit, result.total),
    )


@router.get("/{batch_id}", response_model=Batch, summary="获取批次详情")
def get_batch(batch_id: str, batch_manager: BatchManagerDep) -> Batch:
    try:
        return Batch.model_validate(batch_manager.get_batch(batch_id))
    except AcademyAdminError as exc:
        raise to_http_exception(exc)


@router.delete("/{batch_id}", response_model=Batch, summary="标记批次待删除")
def mark_batch_for_deletion(
    batch_id: str,
    batch_manager: BatchManagerDep,
    req: Optional[ReasonRequest] = None,
) -> Batch:
    req = req or ReasonRequest()
    try:
        batch = batch_manager.mark_for_deletion(batch_id, req.reason, req.performed_by)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return Batch.model_validate(batch)


@router.post("/{batch_id}/permanent-delete", response_model=Batch, summary="永久删除批次")
def permanently_delete_batch(
    batch_id: str,
    batch_manager: BatchManagerDep,
    req: Optional[ReasonRequest] = None,
) -> Batch:
    req = req or ReasonRequest()
    try:
        batch = batch_manager.permanently_delete(batch_id, req.performed_by)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return Batch.model_validate(batch)


@router.post(
    "/{batch_id}/reset-signup-code",
    response_model=ResetSignupCodeResponse,
    summary="重置注册码",
)
def reset_signup_code(
    batch_id: str,
    registry: SignupCodeRegistryDep,
    req: Optional[ReasonRequest] = None,
) -> ResetSignupCodeResponse:
    """Replace the batch's signup code. The old code stops working immediately.

    Raises:
        HTTPException: 404 if the batch is unknown, 409 on a concurrent reset.
    """
    req = req or ReasonRequest()
    try:
        row = registry.reset_code(batch_id, req.reason, req.performed_by)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return ResetSignupCodeResponse(
        new_signup_code=row.code,
        reset_at=row.reset_at,
        status=SignupCodeStatus.model_validate(row),
    )


@router.post(
    "/{batch_id}/toggle-signup-code",
    response_model=ToggleSignupCodeResponse,
    summary="启用/停用注册码",
)
def toggle_signup_code(
    batch_id: str,
    registry: SignupCodeRegistryDep,
    req: Optional[ReasonRequest] = None,
) -> ToggleSignupCodeResponse:
    req = req or ReasonRequest()
    try:
        row = registry.toggle_status(batch_id, req.reason, req.performed_by)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    state = "activated" if row.is_active else "deactivated"
    return ToggleSignupCodeResponse(
        is_active=row.is_active,
        message=f"Signup code {state} successfully",
        status=SignupCodeStatus.model_validate(row),
    )


@router.get(
    "/{batch_id}/signup-code-status",
    response_model=SignupCodeStatus,
    summary="获取注册码状态",
)
def get_signup_code_status(batch_id: str, registry: SignupCodeRegistryDep) -> SignupCodeStatus:
    try:
        return SignupCodeStatus.model_validate(registry.get_status(batch_id))
    except AcademyAdminError as exc:
        raise to_http_exception(exc)


@router.get(
    "/{batch_id}/signup-code-history",
    response_model=SignupCodeHistory,
    summary="获取注册码变更历史",
)
def get_signup_code_history(
    batch_id: str,
    batch_manager: BatchManagerDep,
    ledger: UsageLedgerDep,
) -> SignupCodeHistory:
    try:
        batch_manager.get_batch(batch_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    events = ledger.list_events(batch_id)
    return SignupCodeHistory(
        batch_id=batch_id,
        events=[SignupCodeEvent.model_validate(e) for e in events],
    )


@router.get(
    "/{batch_id}/usage-logs",
    response_model=ActivityLogResponse,
    summary="获取批次注册码使用记录",
)
def get_batch_usage_logs(
    batch_id: str,
    batch_manager: BatchManagerDep,
    ledger: UsageLedgerDep,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> ActivityLogResponse:
    try:
        batch_manager.get_batch(batch_id)
        filters = UsageLogFilters(batch_ids=[batch_id])
        result = ledger.query(filters, page=page, limit=limit)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return ActivityLogResponse(
        logs=[UsageLogEntry.model_validate(e) for e in result.entries],
        stats=ledger.batch_stats(batch_id),
        pagination=Pagination.build(page, limit, result.total),
    )
