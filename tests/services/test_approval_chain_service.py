"""
Tests for the approval chain lifecycle (siteops_kernel/services/approval_chain_service.py).

Tests cover:
- create_approval_chain: steps from configuration, required approval level
  and escalation from thresholds, validation of inputs
- act_on_step: in-order decisions, role and scope checks, rejection comments,
  terminal immutability, version conflicts
- cancel: initiator only, pending only
- Queries: pending-for-actor, history by subject
- Notifications and audit logging
"""

from decimal import Decimal

import pytest

from siteops_engines.approval_policy import ApprovalPolicy
from siteops_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    ApprovalType,
    StepStatus,
)
from siteops_kernel.domain.org import Role
from siteops_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalRequestNotFoundError,
    ConcurrencyConflictError,
    CorruptApprovalRequestError,
    ForbiddenError,
    InvalidStateError,
    NotInitiatorError,
    OrgUnitNotFoundError,
    OutOfScopeError,
    RejectionCommentRequiredError,
    UserNotFoundError,
    WrongApproverRoleError,
)
from siteops_kernel.services import ApprovalChainService

APPROVE = ApprovalDecision.APPROVE
REJECT = ApprovalDecision.REJECT


@pytest.fixture
def budget_request(approval_service) -> ApprovalRequest:
    return approval_service.create_approval_chain(
        ApprovalType.BUDGET_CHANGE,
        initiator_id="u-eng1",
        org_unit_id="Z1",
        amount=Decimal("2500"),
        category="expense",
        subject_id="site-7",
    )


# =========================================================================
# Creation
# =========================================================================


class TestCreate:

    def test_steps_follow_configured_chain(self, budget_request, deterministic_clock):
        assert [s.required_role for s in budget_request.steps] == [
            Role.SITE_MANAGER, Role.PROJECT_MANAGER, Role.FINANCE_MANAGER,
        ]
        assert all(s.status is StepStatus.PENDING for s in budget_request.steps)
        assert budget_request.current_step_index == 0
        assert budget_request.status is ApprovalStatus.PENDING
        assert budget_request.version == 0
        assert budget_request.created_at == deterministic_clock.now()

    def test_request_is_persisted(self, approval_service, budget_request):
        assert approval_service.get_request(budget_request.id) == budget_request

    def test_emits_request_event(self, budget_request, dispatcher):
        assert dispatcher.names() == ["approval-request"]
        event = dispatcher.events[0]
        assert event.next_role is Role.SITE_MANAGER
        assert event.actor_id == "u-eng1"
        assert event.subject_id == "site-7"

    def test_logs_creation(self, approval_service, captured_logs):
        approval_service.create_approval_chain(
            "expense", "u-eng1", "Z1", 300, "expense",
        )
        created = [r for r in captured_logs() if r["message"] == "approval_chain_created"]
        assert len(created) == 1
        assert created[0]["chain"] == ["ZONE_MANAGER", "PROJECT_MANAGER"]
        assert created[0]["actor_id"] == "u-eng1"

    def test_under_limit_amount_stays_at_initiator_level(self, approval_service, dispatcher):
        request = approval_service.create_approval_chain(
            ApprovalType.EXPENSE, "u-zone1", "Z1", Decimal("800"), "expense",
        )
        assert request.required_level is Role.ZONE_MANAGER
        assert not request.escalates
        assert dispatcher.events[-1].payload == {
            "required_level": "ZONE_MANAGER", "escalates": False,
        }

    def test_over_limit_amount_escalates(self, approval_service, dispatcher, captured_logs):
        request = approval_service.create_approval_chain(
            ApprovalType.EXPENSE, "u-zone1", "Z1", Decimal("15000"), "expense",
        )
        assert request.required_level is Role.AREA_MANAGER
        assert request.escalates
        assert approval_service.get_request(request.id).required_level is Role.AREA_MANAGER

        event = dispatcher.events[-1]
        assert event.name.value == "approval-request"
        assert event.payload == {"required_level": "AREA_MANAGER", "escalates": True}

        created = next(r for r in captured_logs() if r["message"] == "approval_chain_created")
        assert created["required_level"] == "AREA_MANAGER"
        assert created["escalates"] is True

    def test_role_without_limit_always_escalates(self, budget_request):
        assert budget_request.required_level is Role.PROJECT_MANAGER
        assert budget_request.escalates

    def test_unknown_org_unit(self, approval_service):
        with pytest.raises(OrgUnitNotFoundError):
            approval_service.create_approval_chain(
                ApprovalType.EXPENSE, "u-eng1", "NOPE", Decimal("1"), "expense",
            )

    def test_unknown_initiator(self, approval_service):
        with pytest.raises(UserNotFoundError):
            approval_service.create_approval_chain(
                ApprovalType.EXPENSE, "u-nobody", "Z1", Decimal("1"), "expense",
            )

    def test_negative_amount(self, approval_service):
        with pytest.raises(ValueError):
            approval_service.create_approval_chain(
                ApprovalType.EXPENSE, "u-eng1", "Z1", Decimal("-5"), "expense",
            )

    def test_unknown_type(self, approval_service):
        with pytest.raises(ValueError):
            approval_service.create_approval_chain(
                "coffee-break", "u-eng1", "Z1", Decimal("1"), "expense",
            )

    def test_unknown_request(self, approval_service):
        with pytest.raises(ApprovalRequestNotFoundError):
            approval_service.get_request("missing")


# =========================================================================
# Deciding steps
# =========================================================================


class TestActOnStep:
    """Scenario: budget-change chain SITE_MANAGER -> PROJECT_MANAGER -> FINANCE_MANAGER."""

    def test_full_chain_approval(self, approval_service, budget_request, dispatcher):
        r1 = approval_service.act_on_step(
            budget_request.id, "u-site1", APPROVE, expected_version=0,
        )
        assert r1.current_step_index == 1
        assert r1.version == 1
        assert r1.steps[0].approver_id == "u-site1"
        assert r1.current_role is Role.PROJECT_MANAGER

        r2 = approval_service.act_on_step(
            budget_request.id, "u-pm1", APPROVE, "within budget", expected_version=1,
        )
        assert r2.current_step_index == 2
        assert r2.steps[1].comment == "within budget"

        r3 = approval_service.act_on_step(
            budget_request.id, "u-fin", APPROVE, expected_version=2,
        )
        assert r3.status is ApprovalStatus.APPROVED
        assert r3.version == 3
        assert r3.completed_at is not None
        assert r3.current_role is None
        assert all(s.status is StepStatus.APPROVED for s in r3.steps)

        assert approval_service.get_request(budget_request.id) == r3
        assert dispatcher.names() == [
            "approval-request", "approval-request", "approval-request", "approval-approved",
        ]

    def test_wrong_role_for_current_step(self, approval_service, budget_request):
        with pytest.raises(WrongApproverRoleError) as exc_info:
            approval_service.act_on_step(
                budget_request.id, "u-fin", APPROVE, expected_version=0,
            )
        assert isinstance(exc_info.value, ForbiddenError)
        assert exc_info.value.required_role == "SITE_MANAGER"
        assert exc_info.value.actor_role == "FINANCE_MANAGER"
        assert approval_service.get_request(budget_request.id) == budget_request

    def test_right_role_out_of_scope(self, approval_service, budget_request):
        # u-site3 is a site manager, but for Z3; the request is in Z1.
        with pytest.raises(OutOfScopeError):
            approval_service.act_on_step(
                budget_request.id, "u-site3", APPROVE, expected_version=0,
            )

    def test_reject_without_comment(self, approval_service, budget_request, captured_logs):
        for comment in (None, "", "   "):
            with pytest.raises(RejectionCommentRequiredError) as exc_info:
                approval_service.act_on_step(
                    budget_request.id, "u-site1", REJECT, comment, expected_version=0,
                )
            assert isinstance(exc_info.value, InvalidStateError)

        stored = approval_service.get_request(budget_request.id)
        assert stored.version == 0
        assert stored.status is ApprovalStatus.PENDING
        refused = [r for r in captured_logs() if r["message"] == "approval_decision_refused"]
        assert {r["error_code"] for r in refused} == {"REJECTION_COMMENT_REQUIRED"}

    def test_rejection_is_final(self, approval_service, budget_request, dispatcher):
        rejected = approval_service.act_on_step(
            budget_request.id, "u-site1", REJECT, "over budget", expected_version=0,
        )
        assert rejected.status is ApprovalStatus.REJECTED
        assert rejected.steps[0].status is StepStatus.REJECTED
        assert rejected.steps[0].comment == "over budget"
        assert dispatcher.names()[-1] == "approval-rejected"
        assert dispatcher.events[-1].payload == {"comment": "over budget"}

        with pytest.raises(ApprovalAlreadyResolvedError) as exc_info:
            approval_service.act_on_step(
                budget_request.id, "u-site1", APPROVE, expected_version=1,
            )
        assert exc_info.value.status == "REJECTED"

    def test_stale_version_conflicts(self, approval_service, budget_request):
        approval_service.act_on_step(
            budget_request.id, "u-site1", APPROVE, expected_version=0,
        )
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            approval_service.act_on_step(
                budget_request.id, "u-site1", APPROVE, expected_version=0,
            )
        assert exc_info.value.retryable
        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1

    def test_version_checked_before_state(self, approval_service, budget_request):
        approval_service.act_on_step(
            budget_request.id, "u-site1", REJECT, "no", expected_version=0,
        )
        # Replaying the same call reports the conflict, not the terminal state.
        with pytest.raises(ConcurrencyConflictError):
            approval_service.act_on_step(
                budget_request.id, "u-site1", REJECT, "no", expected_version=0,
            )

    def test_unknown_actor(self, approval_service, budget_request):
        with pytest.raises(UserNotFoundError):
            approval_service.act_on_step(
                budget_request.id, "u-nobody", APPROVE, expected_version=0,
            )

    def test_decision_logged(self, approval_service, budget_request, captured_logs):
        approval_service.act_on_step(
            budget_request.id, "u-site1", APPROVE, expected_version=0,
        )
        decided = [r for r in captured_logs() if r["message"] == "approval_step_decided"]
        assert decided[0]["step_index"] == 0
        assert decided[0]["decision"] == "APPROVE"
        assert decided[0]["version"] == 1
        assert decided[0]["actor_id"] == "u-site1"
        assert decided[0]["actor_role"] == "SITE_MANAGER"
        assert decided[0]["tenant_id"] == "default"

    def test_single_step_chain(self, approval_service, dispatcher):
        request = approval_service.create_approval_chain(
            ApprovalType.TASK_COMPLETION, "u-eng1", "Z1", 0, "tasks",
        )
        done = approval_service.act_on_step(
            request.id, "u-site1", "APPROVE", expected_version=0,
        )
        assert done.status is ApprovalStatus.APPROVED
        assert dispatcher.names() == ["approval-request", "approval-approved"]


# =========================================================================
# Cancellation
# =========================================================================


class TestCancel:

    def test_initiator_cancels(self, approval_service, budget_request, dispatcher):
        cancelled = approval_service.cancel(budget_request.id, "u-eng1", expected_version=0)
        assert cancelled.status is ApprovalStatus.CANCELLED
        assert cancelled.version == 1
        assert cancelled.current_role is None
        assert dispatcher.names()[-1] == "approval-cancelled"
        assert approval_service.get_request(budget_request.id) == cancelled

    def test_cancel_midway(self, approval_service, budget_request):
        approval_service.act_on_step(
            budget_request.id, "u-site1", APPROVE, expected_version=0,
        )
        cancelled = approval_service.cancel(budget_request.id, "u-eng1", expected_version=1)
        assert cancelled.status is ApprovalStatus.CANCELLED
        assert cancelled.steps[0].status is StepStatus.APPROVED

    def test_only_initiator(self, approval_service, budget_request):
        with pytest.raises(NotInitiatorError):
            approval_service.cancel(budget_request.id, "u-pmo", expected_version=0)

    def test_terminal_cannot_be_cancelled(self, approval_service, budget_request):
        approval_service.cancel(budget_request.id, "u-eng1", expected_version=0)
        with pytest.raises(ApprovalAlreadyResolvedError):
            approval_service.cancel(budget_request.id, "u-eng1", expected_version=1)

    def test_cancel_stale_version(self, approval_service, budget_request):
        approval_service.act_on_step(
            budget_request.id, "u-site1", APPROVE, expected_version=0,
        )
        with pytest.raises(ConcurrencyConflictError):
            approval_service.cancel(budget_request.id, "u-eng1", expected_version=0)

    def test_decision_after_cancel(self, approval_service, budget_request):
        approval_service.cancel(budget_request.id, "u-eng1", expected_version=0)
        with pytest.raises(ApprovalAlreadyResolvedError):
            approval_service.act_on_step(
                budget_request.id, "u-site1", APPROVE, expected_version=1,
            )


# =========================================================================
# Queries
# =========================================================================


class TestQueries:

    def test_pending_for_actor_by_role_and_scope(self, approval_service):
        west = approval_service.create_approval_chain(
            ApprovalType.BUDGET_CHANGE, "u-eng1", "Z1", 100, "expense",
        )
        east = approval_service.create_approval_chain(
            ApprovalType.BUDGET_CHANGE, "u-eng1", "Z3", 100, "expense",
        )

        assert [r.id for r in approval_service.list_pending_for_actor("u-site1")] == [west.id]
        assert [r.id for r in approval_service.list_pending_for_actor("u-site3")] == [east.id]
        assert approval_service.list_pending_for_actor("u-pm1") == []

        approval_service.act_on_step(west.id, "u-site1", APPROVE, expected_version=0)

        assert approval_service.list_pending_for_actor("u-site1") == []
        assert [r.id for r in approval_service.list_pending_for_actor("u-pm1")] == [west.id]

    def test_pending_narrowed_by_selection(self, approval_service):
        for unit in ("Z1", "Z3"):
            request = approval_service.create_approval_chain(
                ApprovalType.SAFE_TRANSACTION, "u-eng1", unit, 50, "safe_transaction",
            )
            zone_manager = "u-zone1" if unit == "Z1" else None
            if zone_manager:
                approval_service.act_on_step(
                    request.id, zone_manager, APPROVE, expected_version=0,
                )

        # Only the Z1 request has reached the finance step.
        pending = approval_service.list_pending_for_actor("u-fin")
        assert [r.org_unit_id for r in pending] == ["Z1"]
        assert approval_service.list_pending_for_actor("u-fin", selected_unit_id="A2") == []

    def test_history_for_subject(self, approval_service, deterministic_clock):
        first = approval_service.create_approval_chain(
            ApprovalType.EXPENSE, "u-eng1", "Z1", 10, "expense", subject_id="site-7",
        )
        deterministic_clock.advance(60)
        approval_service.create_approval_chain(
            ApprovalType.EXPENSE, "u-eng1", "Z1", 10, "expense", subject_id="site-8",
        )
        deterministic_clock.advance(60)
        third = approval_service.create_approval_chain(
            ApprovalType.EQUIPMENT_PURCHASE, "u-eng1", "Z1", 10, "equipment",
            subject_id="site-7",
        )

        history = approval_service.history_for_subject("site-7")
        assert [r.id for r in history] == [first.id, third.id]
        assert approval_service.history_for_subject("site-unknown") == []


# =========================================================================
# Failure isolation
# =========================================================================


class FailingDispatcher:
    def dispatch(self, event):
        raise RuntimeError("smtp down")


class TestNotificationFailure:

    def test_dispatch_failure_does_not_fail_transition(
        self,
        directory,
        org_repository,
        approval_store,
        scope_resolver,
        access_config,
        captured_logs,
    ):
        service = ApprovalChainService(
            directory=directory,
            tree_source=org_repository,
            store=approval_store,
            dispatcher=FailingDispatcher(),
            scope=scope_resolver,
            chains=access_config.chains,
            thresholds=ApprovalPolicy(access_config.thresholds),
        )
        request = service.create_approval_chain(
            ApprovalType.EXPENSE, "u-eng1", "Z1", 10, "expense",
        )
        assert service.get_request(request.id).status is ApprovalStatus.PENDING

        failures = [r for r in captured_logs() if r["message"] == "notification_dispatch_failed"]
        assert len(failures) == 1
        assert failures[0]["exc_type"] == "RuntimeError"


class TestCorruptRequest:

    def test_inconsistent_stored_request(self, approval_service, approval_store, captured_logs):
        broken = ApprovalRequest(
            id="req-broken",
            type=ApprovalType.EXPENSE,
            amount=Decimal("10"),
            category="expense",
            initiator_id="u-eng1",
            org_unit_id="Z1",
            steps=(ApprovalStep(Role.ZONE_MANAGER), ApprovalStep(Role.PROJECT_MANAGER)),
            status=ApprovalStatus.APPROVED,
        )
        approval_store.add(broken)

        with pytest.raises(CorruptApprovalRequestError):
            approval_service.get_request("req-broken")
        with pytest.raises(CorruptApprovalRequestError):
            approval_service.act_on_step(
                "req-broken", "u-zone1", APPROVE, expected_version=0,
            )
        assert any(r["message"] == "approval_request_corrupt" for r in captured_logs())
