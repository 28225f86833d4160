"""Projection of admission traces into caller-facing bulk results.

Pure functions over the trace: no state, no I/O.
"""

from dataclasses import dataclass
from typing import List, Optional

from schemas.class_schema import CapacityInfo
from schemas.enums import BulkOutcome
from schemas.join_request import (
    BulkApproveDetails,
    BulkApproveResult,
    BulkItemResult,
    BulkRejectDetails,
    BulkRejectResult,
)


@dataclass(frozen=True)
class TraceItem:
    """What happened to one request id during a bulk call."""
    request_id: str
    outcome: BulkOutcome
    student_name: Optional[str] = None
    reason: Optional[str] = None

    def to_result(self) -> BulkItemResult:
        return BulkItemResult(
            request_id=self.request_id,
            student_name=self.student_name,
            outcome=self.outcome,
            reason=self.reason,
        )


def _pick(trace: List[TraceItem], outcome: BulkOutcome) -> List[BulkItemResult]:
    return [item.to_result() for item in trace if item.outcome is outcome]


def _summary(prefix: str, parts: List[str]) -> str:
    return f"{prefix}: " + ", ".join(parts)


class BulkOperationReporter:
    """Builds BulkApproveResult / BulkRejectResult from a trace."""

    def approve_report(
        self, trace: List[TraceItem], capacity: Optional[CapacityInfo]
    ) -> BulkApproveResult:
        approved = _pick(trace, BulkOutcome.APPROVED)
        rejected = _pick(trace, BulkOutcome.REJECTED)
        already = _pick(trace, BulkOutcome.ALREADY_ENROLLED)
        if len(approved) + len(rejected) + len(already) != len(trace):
            raise ValueError("Bulk approve trace contains outcomes outside approve/reject/already-enrolled")

        parts = [f"{len(approved)} approved"]
        if rejected:
            parts.append(f"{len(rejected)} rejected")
        if already:
            parts.append(f"{len(already)} already enrolled")
        message = _summary("Bulk operation completed", parts)
        if capacity is not None and capacity.max is not None and capacity.available == 0 and rejected:
            message += " (class is full)"

        return BulkApproveResult(
            message=message,
            approved=len(approved),
            rejected=len(rejected),
            already_enrolled=len(already),
            capacity=capacity,
            details=BulkApproveDetails(
                approved_students=approved,
                rejected_students=rejected,
                already_enrolled_students=already,
            ),
        )

    def reject_report(self, trace: List[TraceItem]) -> BulkRejectResult:
        rejected = _pick(trace, BulkOutcome.REJECTED)
        no_ops = _pick(trace, BulkOutcome.NO_OP)
        errors = _pick(trace, BulkOutcome.ERROR)
        if len(rejected) + len(no_ops) + len(errors) != len(trace):
            raise ValueError("Bulk reject trace contains outcomes outside reject/no-op/error")

        parts = [f"{len(rejected)} request(s) rejected"]
        if no_ops:
            parts.append(f"{len(no_ops)} already processed")
        if errors:
            parts.append(f"{len(errors)} failed")
        return BulkRejectResult(
            message=_summary("Bulk rejection completed", parts),
            rejected=len(rejected),
            no_ops=len(no_ops),
            errors=len(errors),
            details=BulkRejectDetails(
                rejected_students=rejected,
                no_op_requests=no_ops,
                errors=errors,
            ),
        )
