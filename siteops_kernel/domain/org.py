"""
Organizational domain types (``siteops_kernel.domain.org``).

Responsibility
--------------
Pure value objects for the organizational hierarchy and the users that
operate within it: unit types, roles, org units and scoped users.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Units and users
are supplied by external directory collaborators and are read-only here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OrgUnitType(str, Enum):
    """Level of an org unit in the hierarchy."""

    PMO = "PMO"
    AREA = "AREA"
    PROJECT = "PROJECT"
    ZONE = "ZONE"


# Display depth used for stable sorting of units.
ORG_UNIT_TYPE_DEPTH: dict[OrgUnitType, int] = {
    OrgUnitType.PMO: 0,
    OrgUnitType.AREA: 1,
    OrgUnitType.PROJECT: 2,
    OrgUnitType.ZONE: 3,
}


class Role(str, Enum):
    """Roles known to the access and approval core."""

    PMO = "PMO"
    ADMIN = "ADMIN"
    AREA_MANAGER = "AREA_MANAGER"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    ZONE_MANAGER = "ZONE_MANAGER"
    SITE_MANAGER = "SITE_MANAGER"
    SITE_ENGINEER = "SITE_ENGINEER"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    CASHIER = "CASHIER"
    VIEWER = "VIEWER"


@dataclass(frozen=True)
class OrgUnit:
    """A node in the organizational hierarchy.

    Stored flat with a ``parent_id`` reference, never nested.  PMO units
    are roots (``parent_id is None``).
    """

    id: str
    type: OrgUnitType
    name: str
    parent_id: str | None = None
    code: str | None = None
    region: str | None = None


@dataclass(frozen=True)
class ScopedUser:
    """A user as resolved by the user/role directory.

    Effective scope is the union of the subtrees rooted at
    ``home_org_unit_id`` and each of ``assignments`` (in order).
    """

    id: str
    role: Role
    home_org_unit_id: str
    assignments: tuple[str, ...] = ()

    @property
    def scope_roots(self) -> tuple[str, ...]:
        """Home unit followed by assignments, duplicates removed."""
        seen: dict[str, None] = {self.home_org_unit_id: None}
        for unit_id in self.assignments:
            seen.setdefault(unit_id, None)
        return tuple(seen)
