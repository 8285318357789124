"""
siteops_engines.scope -- Scope resolution over the org-unit hierarchy.

Responsibility:
    Compute the set of org-unit ids a user may operate within, optionally
    narrowed by a selected viewing scope, and filter records to that set.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import siteops_kernel domain types.

Invariants enforced:
    - Effective scope is the union of the subtrees rooted at the user's home
      unit and each assignment.
    - A selected unit only narrows: the result is the intersection with the
      selection's subtree, never a superset of the effective scope.
    - Cached subtrees are keyed by (tenant_id, root_unit_id) and tagged with
      the tree fingerprint; a mutated tree never serves a stale entry.

Failure modes:
    - OrgUnitNotFoundError when the home unit, an assignment, or the
      selection is absent from the tree.
    - CorruptHierarchyError propagates from OrgTree traversal.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from siteops_kernel.domain.org import OrgUnit, ScopedUser
from siteops_kernel.domain.org_tree import OrgTree

T = TypeVar("T")


@dataclass(frozen=True)
class ScopeSelection:
    """Result of resolving a user's scope with an optional selected unit."""

    selected_unit_id: str | None
    allowed_unit_ids: frozenset[str]
    breadcrumb: tuple[OrgUnit, ...] = ()


class ScopeResolver:
    """Resolves user scopes against org tree snapshots.

    Safe to share between threads; only the subtree cache is mutable and
    it is guarded by a lock.
    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, str], tuple[str, frozenset[str]]] = {}
        self._lock = threading.Lock()

    def subtree_ids(self, tree: OrgTree, root_id: str) -> frozenset[str]:
        """``tree.get_subtree_ids(root_id)``, cached per tenant and root."""
        key = (tree.tenant_id, root_id)
        fingerprint = tree.fingerprint
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and cached[0] == fingerprint:
            return cached[1]

        ids = tree.get_subtree_ids(root_id)
        with self._lock:
            self._cache[key] = (fingerprint, ids)
        return ids

    def invalidate(self, tenant_id: str | None = None) -> None:
        """Drop cached subtrees for one tenant, or for all tenants."""
        with self._lock:
            if tenant_id is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == tenant_id]:
                del self._cache[key]

    def resolve_scope(
        self,
        tree: OrgTree,
        user: ScopedUser,
        selected_unit_id: str | None = None,
    ) -> frozenset[str]:
        """Unit ids ``user`` may operate within.

        Args:
            tree: Current org tree snapshot.
            user: The resolved user.
            selected_unit_id: Optional viewing scope; narrows the result.

        Returns:
            Union of subtrees over home unit and assignments, intersected
            with the selection's subtree when a selection is given.
        """
        allowed: set[str] = set()
        for root_id in user.scope_roots:
            allowed |= self.subtree_ids(tree, root_id)

        if selected_unit_id is not None:
            return frozenset(allowed) & self.subtree_ids(tree, selected_unit_id)
        return frozenset(allowed)

    def resolve_selection(
        self,
        tree: OrgTree,
        user: ScopedUser,
        selected_unit_id: str | None = None,
    ) -> ScopeSelection:
        """Scope plus the breadcrumb of the selected unit (org switcher state)."""
        allowed = self.resolve_scope(tree, user, selected_unit_id)
        breadcrumb: tuple[OrgUnit, ...] = ()
        if selected_unit_id is not None:
            breadcrumb = tuple(tree.get_path(selected_unit_id))
        return ScopeSelection(
            selected_unit_id=selected_unit_id,
            allowed_unit_ids=allowed,
            breadcrumb=breadcrumb,
        )

    def within_user_scope(
        self,
        tree: OrgTree,
        user: ScopedUser,
        unit_id: str,
        selected_unit_id: str | None = None,
    ) -> bool:
        return unit_id in self.resolve_scope(tree, user, selected_unit_id)

    def filter_records(
        self,
        tree: OrgTree,
        user: ScopedUser,
        records: Iterable[T],
        unit_id_of: Callable[[T], str],
        selected_unit_id: str | None = None,
    ) -> list[T]:
        """Keep only records whose org unit lies within the user's scope."""
        allowed = self.resolve_scope(tree, user, selected_unit_id)
        return [r for r in records if unit_id_of(r) in allowed]
