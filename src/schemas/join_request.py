"""Class join request schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from schemas.class_schema import CapacityInfo
from schemas.common import Pagination, UtcDatetime
from schemas.enums import BulkOutcome, JoinRequestStatus


class CreateJoinRequest(BaseModel):
    class_id: str
    student_id: str
    request_message: Optional[str] = None


class ReviewRequest(BaseModel):
    review_message: Optional[str] = None
    reviewer_id: Optional[str] = None


class BulkReviewRequest(BaseModel):
    request_ids: List[str] = Field(description="Processed in the given order.")
    review_message: Optional[str] = None
    reviewer_id: Optional[str] = None


class JoinRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    class_id: str
    student_id: str
    student_name: Optional[str] = None
    status: JoinRequestStatus
    request_message: Optional[str] = None
    review_message: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @model_validator(mode="before")
    @classmethod
    def flatten_student_name(cls, data):
        """ORM rows carry the student relationship; lift its display name."""
        student = getattr(data, "student", None)
        if student is not None and not isinstance(data, dict):
            values = {
                name: getattr(data, name)
                for name in cls.model_fields
                if name != "student_name" and hasattr(data, name)
            }
            values["student_name"] = student.display_name
            return values
        return data


class JoinRequestPage(BaseModel):
    requests: List[JoinRequest]
    pagination: Pagination


class JoinEligibility(BaseModel):
    can_request: bool
    is_open_class: bool = False
    reason: Optional[str] = None
    minutes_left: Optional[int] = None
    pending_requests_count: int = 0


class BulkItemResult(BaseModel):
    request_id: str
    student_name: Optional[str] = None
    outcome: BulkOutcome
    reason: Optional[str] = None


class BulkApproveDetails(BaseModel):
    approved_students: List[BulkItemResult]
    rejected_students: List[BulkItemResult]
    already_enrolled_students: List[BulkItemResult]


class BulkApproveResult(BaseModel):
    message: str
    approved: int
    rejected: int
    already_enrolled: int
    capacity: Optional[CapacityInfo] = Field(
        default=None, description="Capacity observed at the end of the run."
    )
    details: BulkApproveDetails


class BulkRejectDetails(BaseModel):
    rejected_students: List[BulkItemResult]
    no_op_requests: List[BulkItemResult]
    errors: List[BulkItemResult]


class BulkRejectResult(BaseModel):
    message: str
    rejected: int
    no_ops: int
    errors: int
    details: BulkRejectDetails
