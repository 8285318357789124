"""
siteops_engines.approval_stats -- Dashboard statistics over approval requests.

Pure aggregation: counts by status and type, and the mean time from
creation to completion for resolved requests.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from siteops_kernel.domain.approval import (
    ApprovalRequest,
    ApprovalStatus,
    ApprovalType,
)


@dataclass(frozen=True)
class ApprovalSummary:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0
    by_type: dict[ApprovalType, int] = field(default_factory=dict)
    average_completion_seconds: float | None = None


def summarize_requests(requests: Iterable[ApprovalRequest]) -> ApprovalSummary:
    """Aggregate a collection of requests.

    ``average_completion_seconds`` covers only requests with both
    ``created_at`` and ``completed_at``; None when there are none.
    """
    requests = list(requests)
    by_status = Counter(r.status for r in requests)
    by_type = Counter(r.type for r in requests)

    durations = [
        (r.completed_at - r.created_at).total_seconds()
        for r in requests
        if r.created_at is not None and r.completed_at is not None
    ]

    return ApprovalSummary(
        total=len(requests),
        pending=by_status[ApprovalStatus.PENDING],
        approved=by_status[ApprovalStatus.APPROVED],
        rejected=by_status[ApprovalStatus.REJECTED],
        cancelled=by_status[ApprovalStatus.CANCELLED],
        by_type=dict(by_type),
        average_completion_seconds=(
            sum(durations) / len(durations) if durations else None
        ),
    )
