from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import UtcDatetime
from schemas.enums import UserRole


class CreateUserRequest(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.STUDENT


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str = Field(description="'first last', or the email when both are empty.")
    role: UserRole
    created_at: UtcDatetime
