"""Batch and signup code schema definitions."""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from schemas.common import UtcDatetime
from schemas.enums import DeletionStatus, SignupCodeAction


class CreateBatchRequest(BaseModel):
    batch_name: str
    academic_year: str
    description: Optional[str] = None
    has_student_limit: bool = False
    max_students: Optional[int] = None
    created_by: Optional[str] = None
    code_max_usage: Optional[int] = Field(
        default=None, description="Redemption limit of the signup code; unlimited if omitted."
    )
    code_expires_at: Optional[datetime] = Field(
        default=None, description="Signup code expiry; never expires if omitted."
    )


class Batch(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    batch_name: str
    description: Optional[str] = None
    academic_year: str
    has_student_limit: bool
    max_students: Optional[int] = None
    current_students: int
    deletion_status: DeletionStatus
    is_active: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class SignupCodeStatus(BaseModel):
    """Read-only projection of a batch's signup code."""
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    signup_code: str = Field(validation_alias=AliasChoices("code", "signup_code"))
    is_active: bool
    usage_count: int
    max_usage: Optional[int] = None
    remaining_usage: Optional[int] = Field(
        default=None, description="None when usage is unlimited."
    )
    expires_at: Optional[UtcDatetime] = None
    reset_count: int
    reset_at: Optional[UtcDatetime] = None
    reset_reason: Optional[str] = None
    deactivation_reason: Optional[str] = None


class ResetSignupCodeResponse(BaseModel):
    new_signup_code: str
    reset_at: UtcDatetime
    status: SignupCodeStatus


class ToggleSignupCodeResponse(BaseModel):
    is_active: bool
    message: str
    status: SignupCodeStatus


class SignupCodeEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: SignupCodeAction
    reason: Optional[str] = None
    old_code: Optional[str] = None
    new_code: Optional[str] = None
    performed_by: Optional[str] = None
    performed_at: UtcDatetime


class SignupCodeHistory(BaseModel):
    batch_id: str
    events: List[SignupCodeEvent]
