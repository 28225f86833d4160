from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import UtcDatetime
from schemas.enums import ClassVisibility


class CreateClassRequest(BaseModel):
    class_name: str
    teacher_id: str
    batch_id: Optional[str] = None
    visibility: ClassVisibility = ClassVisibility.OPEN
    max_students: Optional[int] = None


class CapacityInfo(BaseModel):
    current: int
    max: Optional[int] = Field(default=None, description="None when unlimited.")
    available: Optional[int] = Field(default=None, description="None when unlimited.")

    @classmethod
    def of(cls, current: int, maximum: Optional[int]) -> "CapacityInfo":
        available = None if maximum is None else max(0, maximum - current)
        return cls(current=current, max=maximum, available=available)


class ClassInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: str
    class_name: str
    teacher_id: str
    batch_id: Optional[str] = None
    visibility: ClassVisibility
    max_students: Optional[int] = None
    current_enrolled: int
    is_active: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ClassMemberInfo(BaseModel):
    student_id: str
    display_name: str
    email: str
    joined_at: UtcDatetime


class ClassDetail(BaseModel):
    info: ClassInfo
    capacity: CapacityInfo
    members: List[ClassMemberInfo]
