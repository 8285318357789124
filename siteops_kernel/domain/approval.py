"""
Approval domain types (``siteops_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the multi-step approval chain: request and step
records, the lifecycle statuses, decisions, and the events emitted on state
transitions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from other ``domain`` modules.

Invariants enforced
-------------------
* Lifecycle state machine -- ``APPROVAL_TRANSITIONS`` defines the only valid
  status transitions.  Terminal states have no outgoing edges.
* Fixed chain -- ``steps`` length and role sequence are fixed at creation.
* Derived status -- ``derive_status`` is the single definition of how the
  overall status follows from step statuses; a stored request that
  disagrees with it is corrupt.
* Forward-only -- ``current_step_index`` never decreases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from siteops_kernel.domain.org import Role
from siteops_kernel.exceptions import ApprovalChainNotConfiguredError


class ApprovalType(str, Enum):
    """Approval request types.  Each type fixes its chain of required roles."""

    BUDGET_CHANGE = "budget-change"
    EXPENSE = "expense"
    EQUIPMENT_PURCHASE = "equipment-purchase"
    SAFE_TRANSACTION = "safe-transaction"
    PAYROLL_RUN = "payroll-run"
    TASK_COMPLETION = "task-completion"


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalDecision(str, Enum):
    """Decision types that an approver can make."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.PENDING,
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.CANCELLED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.CANCELLED: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.CANCELLED,
})


class ApprovalEventName(str, Enum):
    """Notification event names emitted on state transitions."""

    REQUESTED = "approval-request"
    APPROVED = "approval-approved"
    REJECTED = "approval-rejected"
    CANCELLED = "approval-cancelled"


@dataclass(frozen=True)
class ApprovalChainTable:
    """Static ``approval type -> ordered required roles`` table."""

    chains: dict[ApprovalType, tuple[Role, ...]] = field(default_factory=dict)

    def chain_for(self, approval_type: ApprovalType) -> tuple[Role, ...]:
        roles = self.chains.get(approval_type)
        if not roles:
            raise ApprovalChainNotConfiguredError(ApprovalType(approval_type).value)
        return roles


# =========================================================================
# Request and Step Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalStep:
    """One step of an approval chain, bound to a required role."""

    required_role: Role
    status: StepStatus = StepStatus.PENDING
    approver_id: str | None = None
    decided_at: datetime | None = None
    comment: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not StepStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "required_role": self.required_role.value,
            "status": self.status.value,
            "approver_id": self.approver_id,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalStep:
        decided_at = data.get("decided_at")
        return cls(
            required_role=Role(data["required_role"]),
            status=StepStatus(data["status"]),
            approver_id=data.get("approver_id"),
            decided_at=datetime.fromisoformat(decided_at) if decided_at else None,
            comment=data.get("comment"),
        )


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of an approval request.

    Every mutation produces a new instance with ``version`` incremented.
    ``subject_id`` is the owning site/task id used for the secondary index.
    ``required_level`` is the lowest role whose limit covers the amount, and
    ``escalates`` is set when that is beyond the initiator's own limit.
    """

    id: str
    type: ApprovalType
    amount: Decimal
    category: str
    initiator_id: str
    org_unit_id: str
    steps: tuple[ApprovalStep, ...]
    current_step_index: int = 0
    status: ApprovalStatus = ApprovalStatus.PENDING
    version: int = 0
    subject_id: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    required_level: Role | None = None
    escalates: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPROVAL_STATUSES

    @property
    def current_step(self) -> ApprovalStep:
        return self.steps[self.current_step_index]

    @property
    def current_role(self) -> Role | None:
        """Role whose decision is awaited, or None once terminal."""
        if self.is_terminal:
            return None
        return self.current_step.required_role

    def to_document(self) -> dict[str, Any]:
        """Self-contained storage document."""
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": str(self.amount),
            "category": self.category,
            "initiator_id": self.initiator_id,
            "org_unit_id": self.org_unit_id,
            "steps": [s.to_dict() for s in self.steps],
            "current_step_index": self.current_step_index,
            "status": self.status.value,
            "version": self.version,
            "subject_id": self.subject_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "required_level": self.required_level.value if self.required_level else None,
            "escalates": self.escalates,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ApprovalRequest:
        created_at = doc.get("created_at")
        completed_at = doc.get("completed_at")
        return cls(
            id=doc["id"],
            type=ApprovalType(doc["type"]),
            amount=Decimal(doc["amount"]),
            category=doc["category"],
            initiator_id=doc["initiator_id"],
            org_unit_id=doc["org_unit_id"],
            steps=tuple(ApprovalStep.from_dict(s) for s in doc["steps"]),
            current_step_index=doc["current_step_index"],
            status=ApprovalStatus(doc["status"]),
            version=doc["version"],
            subject_id=doc.get("subject_id"),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            required_level=Role(doc["required_level"]) if doc.get("required_level") else None,
            escalates=doc.get("escalates", False),
        )


def derive_status(
    steps: tuple[ApprovalStep, ...],
    cancelled: bool = False,
) -> ApprovalStatus:
    """Overall status as a pure function of the step statuses.

    REJECTED dominates; APPROVED requires every step APPROVED; otherwise
    PENDING unless explicitly cancelled.
    """
    if any(s.status is StepStatus.REJECTED for s in steps):
        return ApprovalStatus.REJECTED
    if steps and all(s.status is StepStatus.APPROVED for s in steps):
        return ApprovalStatus.APPROVED
    if cancelled:
        return ApprovalStatus.CANCELLED
    return ApprovalStatus.PENDING


def consistency_problem(request: ApprovalRequest) -> str | None:
    """Describe why ``request`` violates the chain invariants, or None."""
    if not request.steps:
        return "request has no steps"
    if not 0 <= request.current_step_index < len(request.steps):
        return f"current_step_index {request.current_step_index} out of range"
    expected = derive_status(
        request.steps,
        cancelled=request.status is ApprovalStatus.CANCELLED,
    )
    if expected is not request.status:
        return f"status {request.status.value} but steps imply {expected.value}"
    for i, step in enumerate(request.steps):
        if i < request.current_step_index and step.status is not StepStatus.APPROVED:
            return f"step {i} behind the cursor is {step.status.value}"
        if i > request.current_step_index and step.status is not StepStatus.PENDING:
            return f"step {i} ahead of the cursor is {step.status.value}"
    return None


# =========================================================================
# Notification events
# =========================================================================


@dataclass(frozen=True)
class ApprovalEvent:
    """Fire-and-forget notification emitted on a state transition."""

    name: ApprovalEventName
    request_id: str
    approval_type: ApprovalType
    org_unit_id: str
    initiator_id: str
    occurred_at: datetime
    actor_id: str | None = None
    next_role: Role | None = None
    subject_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
