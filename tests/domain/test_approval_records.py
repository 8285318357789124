"""
Tests for approval chain value objects (siteops_kernel/domain/approval.py).

Tests cover:
- derive_status: rejection dominance, full approval, cancellation
- consistency_problem: the invariants a stored request must satisfy
- ApprovalChainTable lookup
- Storage document fidelity
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from siteops_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalChainTable,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    ApprovalType,
    StepStatus,
    consistency_problem,
    derive_status,
)
from siteops_kernel.domain.org import Role
from siteops_kernel.exceptions import ApprovalChainNotConfiguredError

CHAIN = (Role.SITE_MANAGER, Role.PROJECT_MANAGER, Role.FINANCE_MANAGER)


def make_steps(*statuses: StepStatus) -> tuple[ApprovalStep, ...]:
    return tuple(
        ApprovalStep(required_role=role, status=status)
        for role, status in zip(CHAIN, statuses)
    )


def make_request(**overrides) -> ApprovalRequest:
    fields = dict(
        id="req-1",
        type=ApprovalType.BUDGET_CHANGE,
        amount=Decimal("2500.00"),
        category="expense",
        initiator_id="u-eng1",
        org_unit_id="Z1",
        steps=make_steps(StepStatus.PENDING, StepStatus.PENDING, StepStatus.PENDING),
    )
    fields.update(overrides)
    return ApprovalRequest(**fields)


class TestDeriveStatus:

    def test_all_pending(self):
        steps = make_steps(StepStatus.PENDING, StepStatus.PENDING, StepStatus.PENDING)
        assert derive_status(steps) is ApprovalStatus.PENDING

    def test_rejection_dominates(self):
        steps = make_steps(StepStatus.APPROVED, StepStatus.REJECTED, StepStatus.PENDING)
        assert derive_status(steps) is ApprovalStatus.REJECTED
        assert derive_status(steps, cancelled=True) is ApprovalStatus.REJECTED

    def test_approved_requires_every_step(self):
        partial = make_steps(StepStatus.APPROVED, StepStatus.APPROVED, StepStatus.PENDING)
        full = make_steps(StepStatus.APPROVED, StepStatus.APPROVED, StepStatus.APPROVED)
        assert derive_status(partial) is ApprovalStatus.PENDING
        assert derive_status(full) is ApprovalStatus.APPROVED

    def test_cancelled_only_when_explicit(self):
        steps = make_steps(StepStatus.APPROVED, StepStatus.PENDING, StepStatus.PENDING)
        assert derive_status(steps, cancelled=True) is ApprovalStatus.CANCELLED


class TestConsistency:

    def test_fresh_request_is_consistent(self):
        assert consistency_problem(make_request()) is None

    def test_midway_request_is_consistent(self):
        request = make_request(
            steps=make_steps(StepStatus.APPROVED, StepStatus.PENDING, StepStatus.PENDING),
            current_step_index=1,
            version=1,
        )
        assert consistency_problem(request) is None

    def test_status_disagreeing_with_steps(self):
        request = make_request(status=ApprovalStatus.APPROVED)
        assert "steps imply PENDING" in consistency_problem(request)

    def test_cursor_out_of_range(self):
        assert "out of range" in consistency_problem(make_request(current_step_index=3))

    def test_skipped_step_behind_cursor(self):
        request = make_request(current_step_index=1)
        assert "behind the cursor" in consistency_problem(request)

    def test_decided_step_ahead_of_cursor(self):
        request = make_request(
            steps=make_steps(StepStatus.PENDING, StepStatus.APPROVED, StepStatus.PENDING),
        )
        assert "ahead of the cursor" in consistency_problem(request)

    def test_no_steps(self):
        assert consistency_problem(make_request(steps=())) == "request has no steps"


class TestLifecycleTable:

    def test_terminal_states_have_no_exits(self):
        for status in TERMINAL_APPROVAL_STATUSES:
            assert APPROVAL_TRANSITIONS[status] == frozenset()

    def test_pending_reaches_every_state(self):
        assert APPROVAL_TRANSITIONS[ApprovalStatus.PENDING] == frozenset(ApprovalStatus)

    def test_current_role_none_once_terminal(self):
        request = make_request()
        assert request.current_role is Role.SITE_MANAGER
        cancelled = replace(request, status=ApprovalStatus.CANCELLED)
        assert cancelled.current_role is None


class TestChainTable:

    def test_chain_for_configured_type(self):
        table = ApprovalChainTable({ApprovalType.BUDGET_CHANGE: CHAIN})
        assert table.chain_for(ApprovalType.BUDGET_CHANGE) == CHAIN
        assert table.chain_for("budget-change") == CHAIN

    def test_missing_chain(self):
        table = ApprovalChainTable({})
        with pytest.raises(ApprovalChainNotConfiguredError) as exc_info:
            table.chain_for(ApprovalType.PAYROLL_RUN)
        assert exc_info.value.approval_type == "payroll-run"


class TestDocument:

    def test_document_preserves_decided_request(self):
        decided_at = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        steps = (
            ApprovalStep(
                Role.SITE_MANAGER, StepStatus.APPROVED, "u-site1", decided_at, "ok",
            ),
            ApprovalStep(Role.PROJECT_MANAGER),
            ApprovalStep(Role.FINANCE_MANAGER),
        )
        request = make_request(
            steps=steps,
            current_step_index=1,
            version=1,
            subject_id="site-42",
            created_at=decided_at,
            required_level=Role.PROJECT_MANAGER,
            escalates=True,
        )

        restored = ApprovalRequest.from_document(request.to_document())

        assert restored == request
        assert restored.amount == Decimal("2500.00")
        assert restored.steps[0].decided_at == decided_at
        assert restored.required_level is Role.PROJECT_MANAGER
        assert restored.escalates
