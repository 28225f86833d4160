"""Signup code usage ledger.

Append-only record of every redemption attempt plus the audit trail of
signup code mutations. Listing and statistics share one filter builder so a
list and its summary always agree for identical filters.
"""

import logging
import math
from datetime import datetime, time
from typing import List, NamedTuple, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from core.exceptions import NotFoundError, ValidationError
from models.base import as_utc, utcnow
from models.signup_code_event import SignupCodeEventModel
from models.usage_log import UsageLogModel
from schemas.enums import RegistrationStatus, SignupCodeAction
from schemas.usage_log import UsageLogFilters, UsageStats

logger = logging.getLogger(__name__)


class LedgerPage(NamedTuple):
    entries: List[UsageLogModel]
    total: int
    pages: int


def parse_date_bound(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date or datetime query value into an aware UTC datetime.

    A bare date used as an upper bound covers that whole day.

    Raises:
        ValidationError: If the value is not ISO 8601.
    """
    if not value:
        return None
    value = value.strip()
    try:
        if len(value) == 10:
            day = datetime.fromisoformat(value).date()
            moment = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: '{value}'")
    return as_utc(moment)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def validate_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")


class UsageLedger:
    """Append-only usage log and code audit trail."""

    def __init__(self, db: Session):
        self.db = db

    # --- Redemption entries ---

    def record(
        self,
        batch_id: Optional[str],
        user_name: str,
        user_email: str,
        code: str,
        status: RegistrationStatus = RegistrationStatus.SUCCESSFUL,
        failure_reason: Optional[str] = None,
    ) -> UsageLogModel:
        """Append a redemption attempt. Joins the caller's transaction."""
        entry = UsageLogModel(
            batch_id=batch_id,
            user_name=user_name,
            user_email=user_email,
            signup_code=code,
            registration_status=RegistrationStatus(status).value,
            failure_reason=failure_reason,
            used_at=utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def resolve(
        self,
        entry_id: int,
        status: RegistrationStatus,
        failure_reason: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> UsageLogModel:
        """Move a pending entry to successful or failed.

        This is the only mutation an entry ever sees. Joins the caller's
        transaction.

        Raises:
            NotFoundError: If the entry does not exist.
            InvalidStateError: If the entry is not pending or the target is pending.
        """
        entry = self.db.get(UsageLogModel, entry_id)
        if not entry:
            raise NotFoundError("Usage log entry", str(entry_id))
        current = RegistrationStatus(entry.registration_status)
        entry.registration_status = current.transition_to(
            RegistrationStatus(status)
        ).value
        entry.failure_reason = failure_reason
        if batch_id and not entry.batch_id:
            entry.batch_id = batch_id
        self.db.flush()
        return entry

    def _filtered(self, filters: UsageLogFilters) -> Query:
        query = self.db.query(UsageLogModel)
        if filters.batch_ids:
            query = query.filter(UsageLogModel.batch_id.in_(filters.batch_ids))
        if filters.statuses:
            query = query.filter(
                UsageLogModel.registration_status.in_(
                    [RegistrationStatus(s).value for s in filters.statuses]
                )
            )
        if filters.start_date:
            query = query.filter(UsageLogModel.used_at >= filters.start_date)
        if filters.end_date:
            query = query.filter(UsageLogModel.used_at <= filters.end_date)
        if filters.search and filters.search.strip():
            pattern = f"%{_escape_like(filters.search.strip())}%"
            query = query.filter(
                or_(
                    UsageLogModel.user_name.ilike(pattern, escape="\\"),
                    UsageLogModel.user_email.ilike(pattern, escape="\\"),
                    UsageLogModel.signup_code.ilike(pattern, escape="\\"),
                )
            )
        return query

    def query(
        self,
        filters: Optional[UsageLogFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> LedgerPage:
        """List entries newest first.

        Args:
            filters: Batch, status, date and free-text filters.
            page: 1-indexed page.
            limit: Page size.

        Returns:
            LedgerPage with the page's entries and totals across all pages.
        """
        validate_pagination(page, limit)
        filters = filters or UsageLogFilters()
        base = self._filtered(filters)
        total = base.order_by(None).count()
        entries = (
            base.order_by(UsageLogModel.used_at.desc(), UsageLogModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return LedgerPage(entries=entries, total=total, pages=math.ceil(total / limit))

    def stats(self, filters: Optional[UsageLogFilters] = None) -> UsageStats:
        filters = filters or UsageLogFilters()
        rows = (
            self._filtered(filters)
            .with_entities(UsageLogModel.registration_status, func.count(UsageLogModel.id))
            .group_by(UsageLogModel.registration_status)
            .all()
        )
        result = UsageStats()
        for status, count in rows:
            setattr(result, RegistrationStatus(status).value, count)
            result.total += count
        return result

    def batch_stats(self, batch_id: str) -> UsageStats:
        return self.stats(UsageLogFilters(batch_ids=[batch_id]))

    # --- Signup code audit trail ---

    def record_event(
        self,
        batch_id: str,
        action: SignupCodeAction,
        reason: Optional[str] = None,
        performed_by: Optional[str] = None,
        old_code: Optional[str] = None,
        new_code: Optional[str] = None,
    ) -> SignupCodeEventModel:
        """Append a code mutation to the audit trail. Joins the caller's transaction."""
        event = SignupCodeEventModel(
            batch_id=batch_id,
            action=SignupCodeAction(action).value,
            reason=reason,
            performed_by=performed_by,
            old_code=old_code,
            new_code=new_code,
            performed_at=utcnow(),
        )
        self.db.add(event)
        self.db.flush()
        logger.debug("Recorded %s event for batch %s", event.action, batch_id)
        return event

    def list_events(self, batch_id: str) -> List[SignupCodeEventModel]:
        return (
            self.db.query(SignupCodeEventModel)
            .filter(SignupCodeEventModel.batch_id == batch_id)
            .order_by(SignupCodeEventModel.id.asc())
            .all()
        )

    def was_ever_issued(self, code: str) -> bool:
        """True if ``code`` appears anywhere in the audit trail."""
        return (
            self.db.query(SignupCodeEventModel.id)
            .filter(
                or_(
                    SignupCodeEventModel.old_code == code,
                    SignupCodeEventModel.new_code == code,
                )
            )
            .first()
            is not None
        )
