"""
siteops_kernel.services.approval_chain_service -- Multi-step approval chains.

Responsibility:
    Creates approval requests from the configured role chain for their
    type, records one decision per step in order, and cancels pending
    requests.  Every persisted change is a version-stamped
    compare-and-swap, and each transition emits a notification event.

Architecture position:
    Kernel > Services.  May import from domain/, db/, models/ and the
    other kernel services.  Collaborators (user directory, tree source,
    request store, notification dispatcher, scope resolver, chain table,
    approval limits, clock) are injected; nothing here reads configuration or global state.

Invariants enforced:
    - Steps are decided strictly in order; no step is skipped and no
      resolved step is decided again.
    - Only an actor holding the current step's role, whose scope covers
      the request's org unit, may decide the step.
    - A rejection carries a non-blank comment and is final.
    - Terminal requests are immutable.
    - Stored status always agrees with the step statuses; a request that
      does not is reported as corrupt instead of being acted on.

Failure modes:
    - ApprovalRequestNotFoundError / UserNotFoundError / OrgUnitNotFoundError.
    - ConcurrencyConflictError when ``expected_version`` is stale.
    - ApprovalAlreadyResolvedError on a terminal request.
    - WrongApproverRoleError / OutOfScopeError / NotInitiatorError.
    - RejectionCommentRequiredError on a blank rejection comment.
    - CorruptApprovalRequestError when a stored request is inconsistent.

Audit relevance:
    approval_chain_created, approval_step_decided and
    approval_request_cancelled are logged for every transition; refused
    decisions are logged as approval_decision_refused with the error code.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from siteops_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    ApprovalChainTable,
    ApprovalDecision,
    ApprovalEvent,
    ApprovalEventName,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    ApprovalType,
    StepStatus,
    consistency_problem,
)
from siteops_kernel.domain.clock import Clock, SystemClock
from siteops_kernel.domain.org_tree import DEFAULT_TENANT
from siteops_kernel.domain.ports import (
    ApprovalRequestStore,
    NotificationDispatcher,
    OrgTreeSource,
    ScopeSource,
    ThresholdSource,
    UserDirectory,
)
from siteops_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ConcurrencyConflictError,
    CorruptApprovalRequestError,
    ForbiddenError,
    InvalidStateError,
    NotInitiatorError,
    OutOfScopeError,
    RejectionCommentRequiredError,
    SiteOpsError,
    WrongApproverRoleError,
)
from siteops_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.approval_chain")


class ApprovalChainService:
    """Approval chain lifecycle: create, decide, cancel, query."""

    def __init__(
        self,
        *,
        directory: UserDirectory,
        tree_source: OrgTreeSource,
        store: ApprovalRequestStore,
        dispatcher: NotificationDispatcher,
        scope: ScopeSource,
        chains: ApprovalChainTable,
        thresholds: ThresholdSource,
        clock: Clock | None = None,
        tenant_id: str = DEFAULT_TENANT,
    ):
        self._directory = directory
        self._tree_source = tree_source
        self._store = store
        self._dispatcher = dispatcher
        self._scope = scope
        self._chains = chains
        self._thresholds = thresholds
        self._clock = clock or SystemClock()
        self._tenant_id = tenant_id

    # =====================================================================
    # Commands
    # =====================================================================

    def create_approval_chain(
        self,
        approval_type: ApprovalType | str,
        initiator_id: str,
        org_unit_id: str,
        amount: Decimal | int | str,
        category: str,
        subject_id: str | None = None,
    ) -> ApprovalRequest:
        """Open a new request with one pending step per role in the chain.

        The request also records the lowest role whose limit covers the
        amount and whether that lies beyond the initiator's own limit.

        Raises:
            ValueError: unknown approval type, or negative amount.
            ApprovalChainNotConfiguredError: no chain for the type.
            UserNotFoundError: initiator unknown.
            OrgUnitNotFoundError: org unit absent from the tree.
        """
        approval_type = ApprovalType(approval_type)
        amount = Decimal(amount)
        if not amount.is_finite() or amount < 0:
            raise ValueError(f"Approval amount must be non-negative, got {amount}")

        roles = self._chains.chain_for(approval_type)
        initiator = self._directory.get_user(initiator_id)
        tree = self._tree_source.load_tree(self._tenant_id)
        tree.get_unit(org_unit_id)
        required_level = self._thresholds.get_required_approval_level(amount, category)
        escalates = not self._thresholds.can_approve(initiator.role, category, amount)

        request = ApprovalRequest(
            id=str(uuid4()),
            type=approval_type,
            amount=amount,
            category=category,
            initiator_id=initiator.id,
            org_unit_id=org_unit_id,
            steps=tuple(ApprovalStep(required_role=role) for role in roles),
            subject_id=subject_id,
            created_at=self._clock.now(),
            required_level=required_level,
            escalates=escalates,
        )
        self._store.add(request)

        with LogContext.bind(tenant_id=self._tenant_id, actor_id=initiator.id):
            logger.info(
                "approval_chain_created",
                extra={
                    "approval_request_id": request.id,
                    "approval_type": approval_type.value,
                    "org_unit_id": org_unit_id,
                    "amount": str(amount),
                    "category": category,
                    "chain": [r.value for r in roles],
                    "required_level": required_level.value,
                    "escalates": escalates,
                    "subject_id": subject_id,
                },
            )
        self._emit(
            ApprovalEventName.REQUESTED, request, actor_id=initiator.id,
            payload={"required_level": required_level.value, "escalates": escalates},
        )
        return request

    def act_on_step(
        self,
        request_id: str,
        actor_id: str,
        decision: ApprovalDecision | str,
        comment: str | None = None,
        *,
        expected_version: int,
    ) -> ApprovalRequest:
        """Record ``actor_id``'s decision on the current step.

        Checks run in a fixed order so that a retried call with a stale
        version always reports a conflict, and nothing is written unless
        every check passes.
        """
        decision = ApprovalDecision(decision)
        with LogContext.bind(tenant_id=self._tenant_id, actor_id=actor_id):
            try:
                request = self._load_for_update(request_id, expected_version)
                actor = self._directory.get_user(actor_id)
                LogContext.set(actor_role=actor.role)

                step_index = request.current_step_index
                required = request.current_step.required_role
                if actor.role is not required:
                    raise WrongApproverRoleError(
                        request_id, step_index, required.value, actor.role.value,
                    )

                tree = self._tree_source.load_tree(self._tenant_id)
                if request.org_unit_id not in self._scope.resolve_scope(tree, actor):
                    raise OutOfScopeError(actor_id, request.org_unit_id)

                if decision is ApprovalDecision.REJECT and not (comment or "").strip():
                    raise RejectionCommentRequiredError(request_id)
            except (ForbiddenError, InvalidStateError, ConcurrencyConflictError) as exc:
                self._refused(request_id, exc)
                raise

            updated = self._apply_decision(request, actor_id, decision, comment)
            self._store.compare_and_swap(updated, expected_version)

            logger.info(
                "approval_step_decided",
                extra={
                    "approval_request_id": request_id,
                    "step_index": step_index,
                    "required_role": required.value,
                    "decision": decision.value,
                    "status": updated.status.value,
                    "version": updated.version,
                },
            )

            if updated.status is ApprovalStatus.APPROVED:
                self._emit(ApprovalEventName.APPROVED, updated, actor_id=actor_id)
            elif updated.status is ApprovalStatus.REJECTED:
                self._emit(
                    ApprovalEventName.REJECTED, updated, actor_id=actor_id,
                    payload={"comment": comment},
                )
            else:
                self._emit(ApprovalEventName.REQUESTED, updated, actor_id=actor_id)
        return updated

    def cancel(
        self,
        request_id: str,
        actor_id: str,
        *,
        expected_version: int,
    ) -> ApprovalRequest:
        """Withdraw a pending request.  Only its initiator may cancel."""
        with LogContext.bind(tenant_id=self._tenant_id, actor_id=actor_id):
            try:
                request = self._store.get(request_id)
                self._check_consistent(request)
                if request.version != expected_version:
                    raise ConcurrencyConflictError(
                        request_id, expected_version, request.version,
                    )
                if request.initiator_id != actor_id:
                    raise NotInitiatorError(request_id, actor_id)
                self._check_transition(request, ApprovalStatus.CANCELLED)
            except (ForbiddenError, InvalidStateError, ConcurrencyConflictError) as exc:
                self._refused(request_id, exc)
                raise

            updated = replace(
                request,
                status=ApprovalStatus.CANCELLED,
                completed_at=self._clock.now(),
                version=request.version + 1,
            )
            self._store.compare_and_swap(updated, expected_version)

            logger.info(
                "approval_request_cancelled",
                extra={
                    "approval_request_id": request_id,
                    "step_index": request.current_step_index,
                    "version": updated.version,
                },
            )
            self._emit(ApprovalEventName.CANCELLED, updated, actor_id=actor_id)
        return updated

    # =====================================================================
    # Queries
    # =====================================================================

    def get_request(self, request_id: str) -> ApprovalRequest:
        request = self._store.get(request_id)
        self._check_consistent(request)
        return request

    def list_pending_for_actor(
        self,
        actor_id: str,
        selected_unit_id: str | None = None,
    ) -> list[ApprovalRequest]:
        """Pending requests awaiting ``actor_id``'s role within their scope."""
        actor = self._directory.get_user(actor_id)
        tree = self._tree_source.load_tree(self._tenant_id)
        allowed = self._scope.resolve_scope(tree, actor, selected_unit_id)
        return self._store.list_pending(actor.role, allowed)

    def history_for_subject(self, subject_id: str) -> list[ApprovalRequest]:
        """All requests raised for a site/task, oldest first."""
        return self._store.list_for_subject(subject_id)

    # =====================================================================
    # Internals
    # =====================================================================

    def _load_for_update(self, request_id: str, expected_version: int) -> ApprovalRequest:
        request = self._store.get(request_id)
        self._check_consistent(request)
        if request.version != expected_version:
            raise ConcurrencyConflictError(request_id, expected_version, request.version)
        if request.is_terminal:
            raise ApprovalAlreadyResolvedError(request_id, request.status.value)
        return request

    def _apply_decision(
        self,
        request: ApprovalRequest,
        actor_id: str,
        decision: ApprovalDecision,
        comment: str | None,
    ) -> ApprovalRequest:
        now = self._clock.now()
        index = request.current_step_index
        approved = decision is ApprovalDecision.APPROVE
        step = replace(
            request.current_step,
            status=StepStatus.APPROVED if approved else StepStatus.REJECTED,
            approver_id=actor_id,
            decided_at=now,
            comment=comment,
        )
        steps = request.steps[:index] + (step,) + request.steps[index + 1:]
        last = index == len(steps) - 1

        if not approved:
            status, next_index = ApprovalStatus.REJECTED, index
        elif last:
            status, next_index = ApprovalStatus.APPROVED, index
        else:
            status, next_index = ApprovalStatus.PENDING, index + 1

        self._check_transition(request, status)
        return replace(
            request,
            steps=steps,
            current_step_index=next_index,
            status=status,
            version=request.version + 1,
            completed_at=now if status is not ApprovalStatus.PENDING else None,
        )

    @staticmethod
    def _check_transition(request: ApprovalRequest, target: ApprovalStatus) -> None:
        if target not in APPROVAL_TRANSITIONS[request.status]:
            raise ApprovalAlreadyResolvedError(request.id, request.status.value)

    @staticmethod
    def _check_consistent(request: ApprovalRequest) -> None:
        problem = consistency_problem(request)
        if problem is not None:
            logger.error(
                "approval_request_corrupt",
                extra={"approval_request_id": request.id, "reason": problem},
            )
            raise CorruptApprovalRequestError(request.id, problem)

    @staticmethod
    def _refused(request_id: str, exc: SiteOpsError) -> None:
        logger.warning(
            "approval_decision_refused",
            extra={
                "approval_request_id": request_id,
                "error_code": exc.code,
                "reason": str(exc),
            },
        )

    def _emit(
        self,
        name: ApprovalEventName,
        request: ApprovalRequest,
        *,
        actor_id: str | None,
        payload: dict | None = None,
    ) -> None:
        event = ApprovalEvent(
            name=name,
            request_id=request.id,
            approval_type=request.type,
            org_unit_id=request.org_unit_id,
            initiator_id=request.initiator_id,
            occurred_at=self._clock.now(),
            actor_id=actor_id,
            next_role=request.current_role,
            subject_id=request.subject_id,
            payload=payload or {},
        )
        try:
            self._dispatcher.dispatch(event)
        except Exception:
            # Delivery is fire-and-forget; the transition is already stored.
            logger.exception(
                "notification_dispatch_failed",
                extra={"approval_request_id": request.id, "event_name": name.value},
            )
