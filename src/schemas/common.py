"""Shared schema building blocks."""

import math
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from models.base import as_utc

# SQLite hands datetimes back naive; every API timestamp is UTC.
UtcDatetime = Annotated[datetime, BeforeValidator(as_utc)]


class Pagination(BaseModel):
    page: int = Field(description="1-indexed page number.")
    limit: int = Field(description="Page size.")
    total: int = Field(description="Rows matching the filters across all pages.")
    pages: int = Field(description="Number of pages for this limit.")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class ReasonRequest(BaseModel):
    """Body shared by signup code and batch mutations."""
    reason: Optional[str] = Field(default=None, description="Why the change was made.")
    performed_by: Optional[str] = Field(
        default=None, description="user_id of the admin performing the change."
    )
