"""
OrgTree -- immutable snapshot of the organizational hierarchy.

Responsibility:
    Single home of every traversal over org units: subtree, ancestors,
    path (breadcrumb), scope containment, roots.  No caller reimplements
    subtree or ancestor semantics.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Built from the flat list of units
    an ``OrgTreeSource`` returns.

Invariants enforced:
    - Forest shape: every non-root unit's parent exists in the snapshot;
      PMO units are roots; no cycles.
    - Bounded traversal: walks deeper than ``MAX_DEPTH`` raise
      ``CorruptHierarchyError`` rather than looping.

Failure modes:
    - OrgUnitNotFoundError for an id absent from the snapshot.
    - CorruptHierarchyError for a dangling parent, a parentless non-PMO
      unit, a cycle, or an exceeded depth bound.
    - ValueError for duplicate unit ids in the input list.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import cached_property

from siteops_kernel.domain.org import ORG_UNIT_TYPE_DEPTH, OrgUnit, OrgUnitType
from siteops_kernel.exceptions import CorruptHierarchyError, OrgUnitNotFoundError
from siteops_kernel.logging_config import get_logger
from siteops_kernel.utils.hashing import hash_org_snapshot

logger = get_logger("domain.org_tree")

MAX_DEPTH = 64

DEFAULT_TENANT = "default"


class OrgTree:
    """Read-only forest of org units for one tenant."""

    def __init__(self, units: Iterable[OrgUnit], tenant_id: str = DEFAULT_TENANT):
        self.tenant_id = tenant_id
        self._by_id: dict[str, OrgUnit] = {}
        self._children: dict[str, list[OrgUnit]] = {}

        for unit in units:
            if unit.id in self._by_id:
                raise ValueError(f"Duplicate org unit id: {unit.id}")
            self._by_id[unit.id] = unit

        for unit in self._by_id.values():
            if unit.type is OrgUnitType.PMO and unit.parent_id is not None:
                self._corrupt(unit.id, "PMO unit has a parent")
            if unit.parent_id is None:
                if unit.type is not OrgUnitType.PMO:
                    self._corrupt(unit.id, f"{unit.type.value} unit has no parent")
                continue
            if unit.parent_id not in self._by_id:
                self._corrupt(unit.id, f"parent {unit.parent_id} is not in the snapshot")
            self._children.setdefault(unit.parent_id, []).append(unit)

        # Every unit must reach a root within the depth bound.
        for unit_id in self._by_id:
            self._walk_up(unit_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    @cached_property
    def fingerprint(self) -> str:
        """Deterministic hash of the snapshot; changes on any mutation."""
        return hash_org_snapshot(self.tenant_id, self._by_id.values())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_unit(self, unit_id: str) -> OrgUnit:
        try:
            return self._by_id[unit_id]
        except KeyError:
            raise OrgUnitNotFoundError(unit_id) from None

    def children(self, unit_id: str) -> list[OrgUnit]:
        self.get_unit(unit_id)
        return list(self._children.get(unit_id, ()))

    def roots(self) -> list[OrgUnit]:
        return [u for u in self._by_id.values() if u.parent_id is None]

    def find_root(self, unit_id: str | None = None) -> OrgUnit | None:
        """Root of ``unit_id``'s tree, or the first PMO root when no id is given."""
        if unit_id is not None:
            return self.get_path(unit_id)[0]
        for unit in self._by_id.values():
            if unit.parent_id is None and unit.type is OrgUnitType.PMO:
                return unit
        return None

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def get_descendants(self, unit_id: str) -> list[OrgUnit]:
        """All transitive descendants of ``unit_id`` (excluding it)."""
        self.get_unit(unit_id)
        result: list[OrgUnit] = []
        stack: list[tuple[str, int]] = [(unit_id, 0)]
        while stack:
            current, depth = stack.pop()
            if depth >= MAX_DEPTH:
                self._corrupt(current, f"subtree deeper than {MAX_DEPTH}")
            for child in self._children.get(current, ()):
                result.append(child)
                stack.append((child.id, depth + 1))
        return result

    def get_subtree_ids(self, root_id: str) -> frozenset[str]:
        """``root_id`` plus all transitive descendants."""
        return frozenset(
            [root_id, *(u.id for u in self.get_descendants(root_id))]
        )

    def get_ancestors(self, unit_id: str) -> list[OrgUnit]:
        """Path from the forest root down to, but excluding, ``unit_id``."""
        return self._walk_up(unit_id)[:-1]

    def get_path(self, unit_id: str) -> list[OrgUnit]:
        """``get_ancestors(unit_id)`` with the unit itself appended."""
        return self._walk_up(unit_id)

    def within_scope(self, candidate_id: str, scope_root_id: str) -> bool:
        """True iff ``candidate_id`` is ``scope_root_id`` or one of its descendants."""
        self.get_unit(scope_root_id)
        if candidate_id == scope_root_id:
            return True
        if candidate_id not in self._by_id:
            return False
        return any(u.id == scope_root_id for u in self.get_ancestors(candidate_id))

    @staticmethod
    def sort_units(units: Iterable[OrgUnit]) -> list[OrgUnit]:
        """Stable order by hierarchy level, then name."""
        return sorted(units, key=lambda u: (ORG_UNIT_TYPE_DEPTH[u.type], u.name))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _walk_up(self, unit_id: str) -> list[OrgUnit]:
        path = [self.get_unit(unit_id)]
        while path[-1].parent_id is not None:
            if len(path) > MAX_DEPTH:
                self._corrupt(unit_id, f"ancestor chain longer than {MAX_DEPTH}")
            path.append(self._by_id[path[-1].parent_id])
        path.reverse()
        return path

    def _corrupt(self, unit_id: str, reason: str) -> None:
        logger.error(
            "org_hierarchy_corrupt",
            extra={"tenant_id": self.tenant_id, "unit_id": unit_id, "reason": reason},
        )
        raise CorruptHierarchyError(unit_id, reason)
