"""
Collaborator interfaces consumed by the kernel.

The core performs no I/O of its own.  Directory lookups, tree snapshots,
request persistence and notification delivery are supplied through these
protocols; reference implementations live in ``siteops_kernel.services``.
Scope and approval limits come from ``siteops_engines``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from siteops_kernel.domain.approval import ApprovalEvent, ApprovalRequest
from siteops_kernel.domain.org import Role, ScopedUser
from siteops_kernel.domain.org_tree import OrgTree


class UserDirectory(Protocol):
    """Resolves a user id to role, home unit and assignments."""

    def get_user(self, user_id: str) -> ScopedUser:
        """Return the user or raise ``UserNotFoundError``."""
        ...


class OrgTreeSource(Protocol):
    """Provides the current org tree snapshot for a tenant."""

    def load_tree(self, tenant_id: str) -> OrgTree:
        ...


class ApprovalRequestStore(Protocol):
    """Approval-request persistence with version-stamped compare-and-swap."""

    def get(self, request_id: str) -> ApprovalRequest:
        """Return the request or raise ``ApprovalRequestNotFoundError``."""
        ...

    def add(self, request: ApprovalRequest) -> None:
        ...

    def compare_and_swap(
        self,
        request: ApprovalRequest,
        expected_version: int,
    ) -> None:
        """Replace the stored request iff its version is ``expected_version``.

        Raises ``ConcurrencyConflictError`` otherwise.
        """
        ...

    def list_pending(
        self,
        role: Role,
        org_unit_ids: frozenset[str],
    ) -> list[ApprovalRequest]:
        ...

    def list_for_subject(self, subject_id: str) -> list[ApprovalRequest]:
        ...


class NotificationDispatcher(Protocol):
    """Fire-and-forget event sink."""

    def dispatch(self, event: ApprovalEvent) -> None:
        ...


class ScopeSource(Protocol):
    """Resolves the unit ids a user may operate within.

    Implemented by ``siteops_engines.scope.ScopeResolver``.
    """

    def resolve_scope(
        self,
        tree: OrgTree,
        user: ScopedUser,
        selected_unit_id: str | None = None,
    ) -> frozenset[str]:
        ...


class ThresholdSource(Protocol):
    """Approval limits per role and spending category.

    Implemented by ``siteops_engines.approval_policy.ApprovalPolicy``.
    """

    def can_approve(self, role: Role, category: str, amount: Decimal) -> bool:
        ...

    def get_required_approval_level(self, amount: Decimal, category: str) -> Role:
        ...
