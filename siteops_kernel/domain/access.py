"""
Access-control domain types (``siteops_kernel.domain.access``).

Closed enumerations for resources and actions, and the immutable tables
that configure role-based permissions and financial approval thresholds.

Both tables are loaded once at startup by ``siteops_config`` and passed
explicitly to the engines; nothing here is a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from siteops_kernel.domain.org import Role


class Resource(str, Enum):
    """Resource types that permissions are granted on."""

    SITES = "sites"
    TASKS = "tasks"
    EMPLOYEES = "employees"
    EXPENSES = "expenses"
    REVENUES = "revenues"
    SAFES = "safes"
    PAYROLL = "payroll"
    REPORTS = "reports"
    APPROVALS = "approvals"
    ORG_UNITS = "org_units"


class Action(str, Enum):
    """Actions a role may perform on a resource."""

    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    EXPORT = "export"


class Unlimited:
    """Sentinel threshold that satisfies every amount comparison.

    A single instance, ``UNLIMITED``, exists.  It is deliberately not a
    number: comparing it arithmetically raises ``TypeError``.
    """

    _instance: Unlimited | None = None

    def __new__(cls) -> Unlimited:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNLIMITED"

    def __reduce__(self) -> str:
        return "UNLIMITED"


UNLIMITED = Unlimited()

Threshold = Decimal | Unlimited


def threshold_covers(threshold: Threshold, amount: Decimal) -> bool:
    """True iff ``amount`` is within ``threshold``."""
    if threshold is UNLIMITED:
        return True
    return amount <= threshold


@dataclass(frozen=True)
class PermissionTable:
    """Static ``role -> resource -> allowed actions`` table.

    Roles in ``wildcard_roles`` bypass the per-action lookup; they are still
    subject to row-level scope filtering.
    """

    grants: dict[Role, dict[Resource, frozenset[Action]]] = field(default_factory=dict)
    wildcard_roles: frozenset[Role] = frozenset()

    def actions_for(self, role: Role, resource: Resource) -> frozenset[Action]:
        return self.grants.get(role, {}).get(resource, frozenset())


@dataclass(frozen=True)
class ThresholdTable:
    """Static ``role -> category -> limit`` table.

    ``ladder`` is the fixed total order of approver roles by increasing
    threshold; its last role is the top (unlimited) approver.
    """

    limits: dict[Role, dict[str, Threshold]] = field(default_factory=dict)
    ladder: tuple[Role, ...] = ()

    def limit_for(self, role: Role, category: str) -> Threshold | None:
        return self.limits.get(role, {}).get(category)

    @property
    def categories(self) -> frozenset[str]:
        found: set[str] = set()
        for by_category in self.limits.values():
            found.update(by_category)
        return frozenset(found)

    @property
    def top_role(self) -> Role:
        if not self.ladder:
            raise ValueError("Threshold table has an empty escalation ladder")
        return self.ladder[-1]
