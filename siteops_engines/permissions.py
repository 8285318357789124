"""
siteops_engines.permissions -- Role-based permission checks.

Responsibility:
    Answer "may this role perform this action on this resource type at all"
    from the static permission table, and combine that coarse check with
    row-level scope for a specific record.  An ``approve`` with an amount
    is also held to the role's approval limit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumes the
    ``PermissionTable`` compiled by ``siteops_config`` and, for amount
    checks, an ``ApprovalPolicy`` over the compiled ``ThresholdTable``.

Invariants:
    - Fail closed: an unknown (role, resource) pair is denied.
    - Wildcard roles bypass the action table and approval limits but never
      bypass scope.
    - Deterministic and stateless; safe to call concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from siteops_kernel.domain.access import Action, PermissionTable, Resource
from siteops_kernel.domain.org import Role, ScopedUser
from siteops_kernel.domain.org_tree import OrgTree
from siteops_kernel.exceptions import (
    ApprovalLimitExceededError,
    OutOfScopeError,
    PermissionDeniedError,
)
from siteops_engines.approval_policy import ApprovalPolicy
from siteops_engines.scope import ScopeResolver


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a combined permission + scope (+ amount) check."""

    allowed: bool
    reason: str = ""
    permission_granted: bool = False
    in_scope: bool = False
    within_limit: bool = True


class PermissionEngine:
    """Evaluates ``can(role, resource, action)`` against a permission table."""

    def __init__(
        self,
        table: PermissionTable,
        approval_policy: ApprovalPolicy | None = None,
    ):
        self._table = table
        self._approval_policy = approval_policy

    @property
    def table(self) -> PermissionTable:
        return self._table

    def is_wildcard(self, role: Role) -> bool:
        return role in self._table.wildcard_roles

    def can(self, role: Role, resource: Resource, action: Action) -> bool:
        if self.is_wildcard(role):
            return True
        return action in self._table.actions_for(role, resource)

    def allowed_actions(self, role: Role, resource: Resource) -> frozenset[Action]:
        if self.is_wildcard(role):
            return frozenset(Action)
        return self._table.actions_for(role, resource)

    def within_approval_limit(self, role: Role, category: str, amount: Decimal) -> bool:
        if self.is_wildcard(role):
            return True
        if self._approval_policy is None:
            raise ValueError("Amount checks need a PermissionEngine built with an ApprovalPolicy")
        return self._approval_policy.can_approve(role, category, amount)

    def check_access(
        self,
        tree: OrgTree,
        scope_resolver: ScopeResolver,
        user: ScopedUser,
        resource: Resource,
        action: Action,
        record_unit_id: str,
        selected_unit_id: str | None = None,
        amount: Decimal | None = None,
        category: str | None = None,
    ) -> AccessDecision:
        """Check permission on the resource type AND scope on the record.

        When ``action`` is APPROVE and an ``amount`` is given, the role must
        also be able to approve it in ``category``.

        Returns:
            AccessDecision; ``reason`` is empty when allowed, or a short
            message naming the failed check.

        Raises:
            ValueError: amount given without a category, or the engine has
                no approval policy.
        """
        if amount is not None and category is None:
            raise ValueError("An approval amount needs a category")

        if not self.can(user.role, resource, action):
            return AccessDecision(
                allowed=False,
                reason=(
                    f"RBAC: role '{user.role.value}' may not "
                    f"{action.value} {resource.value}"
                ),
            )

        in_scope = scope_resolver.within_user_scope(
            tree, user, record_unit_id, selected_unit_id,
        )
        if not in_scope:
            return AccessDecision(
                allowed=False,
                reason=f"Scope: unit '{record_unit_id}' outside user scope",
                permission_granted=True,
            )

        if action is Action.APPROVE and amount is not None:
            if not self.within_approval_limit(user.role, category, amount):
                return AccessDecision(
                    allowed=False,
                    reason=(
                        f"Threshold: role '{user.role.value}' may not approve "
                        f"{amount} {category}"
                    ),
                    permission_granted=True,
                    in_scope=True,
                    within_limit=False,
                )

        return AccessDecision(
            allowed=True, permission_granted=True, in_scope=True,
        )

    def require_access(
        self,
        tree: OrgTree,
        scope_resolver: ScopeResolver,
        user: ScopedUser,
        resource: Resource,
        action: Action,
        record_unit_id: str,
        selected_unit_id: str | None = None,
        amount: Decimal | None = None,
        category: str | None = None,
    ) -> None:
        """Like ``check_access`` but raises a ``ForbiddenError`` subclass on denial."""
        decision = self.check_access(
            tree, scope_resolver, user, resource, action,
            record_unit_id, selected_unit_id, amount, category,
        )
        if decision.allowed:
            return
        if not decision.permission_granted:
            raise PermissionDeniedError(user.role.value, resource.value, action.value)
        if not decision.in_scope:
            raise OutOfScopeError(user.id, record_unit_id)
        raise ApprovalLimitExceededError(user.role.value, category, str(amount))
