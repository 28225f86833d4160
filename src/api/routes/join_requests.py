"""Class join request routes.

Students submit requests; teachers approve or reject them one at a time or
in bulk.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from api.errors import to_http_exception
from config import DEFAULT_PAGE_LIMIT
from core.dependencies import AdmissionControllerDep, JoinRequestManagerDep
from core.exceptions import AcademyAdminError
from schemas.common import Pagination
from schemas.enums import JoinRequestStatus
from schemas.join_request import (
    BulkApproveResult,
    BulkRejectResult,
    BulkReviewRequest,
    CreateJoinRequest,
    JoinEligibility,
    JoinRequest,
    JoinRequestPage,
    ReviewRequest,
)

router = APIRouter(prefix="/api/join-requests", tags=["JoinRequest"])


def _page(result, page: int, limit: int) -> JoinRequestPage:
    return JoinRequestPage(
        requests=[JoinRequest.model_validate(r) for r in result.requests],
        pagination=Pagination.build(page, limit, result.total),
    )


@router.post(
    "",
    response_model=JoinRequest,
    status_code=status.HTTP_201_CREATED,
    summary="提交加入班级申请",
)
def create_join_request(
    req: CreateJoinRequest,
    join_request_manager: JoinRequestManagerDep,
) -> JoinRequest:
    """Submit a join request. Open classes are joined immediately.

    Raises:
        HTTPException: 404 for an unknown class or student, 409 if already
            enrolled or the class is full, 400 for an unlisted class, 429
            during the cooldown.
    """
    try:
        request = join_request_manager.create_request(
            req.student_id, req.class_id, req.request_message
        )
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return JoinRequest.model_validate(request)


@router.get(
    "/class/{class_id}/pending",
    response_model=List[JoinRequest],
    summary="获取班级待审核申请",
)
def list_pending_requests(
    class_id: str,
    join_request_manager: JoinRequestManagerDep,
) -> List[JoinRequest]:
    try:
        requests = join_request_manager.list_pending(class_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return [JoinRequest.model_validate(r) for r in requests]


@router.get(
    "/class/{class_id}",
    response_model=JoinRequestPage,
    summary="获取班级申请历史",
)
def list_class_requests(
    class_id: str,
    join_request_manager: JoinRequestManagerDep,
    status_filter: Optional[JoinRequestStatus] = Query(default=None, alias="status"),
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> JoinRequestPage:
    try:
        result = join_request_manager.list_history(class_id, status_filter, page, limit)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return _page(result, page, limit)


@router.get(
    "/student/{student_id}",
    response_model=JoinRequestPage,
    summary="获取学生的申请记录",
)
def list_student_requests(
    student_id: str,
    join_request_manager: JoinRequestManagerDep,
    status_filter: Optional[JoinRequestStatus] = Query(default=None, alias="status"),
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> JoinRequestPage:
    try:
        result = join_request_manager.list_for_student(student_id, status_filter, page, limit)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return _page(result, page, limit)


@router.get(
    "/can-request/{class_id}",
    response_model=JoinEligibility,
    summary="检查是否可以申请加入班级",
)
def check_request_eligibility(
    class_id: str,
    join_request_manager: JoinRequestManagerDep,
    student_id: str = Query(...),
) -> JoinEligibility:
    try:
        return join_request_manager.check_eligibility(student_id, class_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)


# Bulk routes are registered before "/{request_id}/..." so "bulk" is never
# captured as a request ID.
@router.patch(
    "/bulk/approve",
    response_model=BulkApproveResult,
    summary="批量通过申请",
)
def bulk_approve_requests(
    req: BulkReviewRequest,
    admission: AdmissionControllerDep,
) -> BulkApproveResult:
    """Approve requests in order until the class is full.

    Per-item failures are reported in the result body, never as HTTP errors.

    Raises:
        HTTPException: 400 if no request IDs are given, 503 on storage failure.
    """
    try:
        return admission.bulk_approve(req.request_ids, req.review_message, req.reviewer_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)


@router.patch(
    "/bulk/reject",
    response_model=BulkRejectResult,
    summary="批量拒绝申请",
)
def bulk_reject_requests(
    req: BulkReviewRequest,
    admission: AdmissionControllerDep,
) -> BulkRejectResult:
    try:
        return admission.bulk_reject(req.request_ids, req.review_message, req.reviewer_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)


@router.patch(
    "/{request_id}/approve",
    response_model=JoinRequest,
    summary="通过申请",
)
def approve_request(
    request_id: str,
    admission: AdmissionControllerDep,
    req: Optional[ReviewRequest] = None,
) -> JoinRequest:
    """Approve one request and enroll the student.

    Raises:
        HTTPException: 404 if unknown, 409 if already processed, already
            enrolled or the class is full.
    """
    req = req or ReviewRequest()
    try:
        request = admission.approve(request_id, req.review_message, req.reviewer_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return JoinRequest.model_validate(request)


@router.patch(
    "/{request_id}/reject",
    response_model=JoinRequest,
    summary="拒绝申请",
)
def reject_request(
    request_id: str,
    req: ReviewRequest,
    admission: AdmissionControllerDep,
) -> JoinRequest:
    try:
        request = admission.reject(request_id, req.review_message, req.reviewer_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return JoinRequest.model_validate(request)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="撤回申请",
)
def cancel_request(
    request_id: str,
    join_request_manager: JoinRequestManagerDep,
    student_id: str = Query(...),
) -> None:
    try:
        join_request_manager.cancel_request(request_id, student_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
