"""Signup code usage log schema definitions."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Pagination, UtcDatetime
from schemas.enums import RegistrationStatus


@dataclass
class UsageLogFilters:
    """Filters combine with AND; values inside a list combine with OR."""
    batch_ids: List[str] = field(default_factory=list)
    statuses: List[RegistrationStatus] = field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None


class UsageLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    batch_id: Optional[str] = None
    user_name: str
    user_email: str
    signup_code: str
    registration_status: RegistrationStatus
    failure_reason: Optional[str] = None
    used_at: UtcDatetime


class UsageStats(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    pending: int = 0


class ActivityLogResponse(BaseModel):
    logs: List[UsageLogEntry]
    stats: UsageStats
    pagination: Pagination


class RedeemSignupCodeRequest(BaseModel):
    signup_code: str = Field(description="Code as typed by the student; case-insensitive.")
    user_name: str
    user_email: str
