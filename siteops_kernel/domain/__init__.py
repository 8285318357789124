"""
Pure domain layer.

This module contains value objects and domain logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from siteops_kernel.domain.access import (
    UNLIMITED,
    Action,
    PermissionTable,
    Resource,
    Threshold,
    ThresholdTable,
    Unlimited,
)
from siteops_kernel.domain.approval import (
    ApprovalChainTable,
    ApprovalDecision,
    ApprovalEvent,
    ApprovalEventName,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    ApprovalType,
    StepStatus,
    derive_status,
)
from siteops_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from siteops_kernel.domain.org import OrgUnit, OrgUnitType, Role, ScopedUser
from siteops_kernel.domain.org_tree import MAX_DEPTH, OrgTree

__all__ = [
    "UNLIMITED",
    "Action",
    "ApprovalChainTable",
    "ApprovalDecision",
    "ApprovalEvent",
    "ApprovalEventName",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalStep",
    "ApprovalType",
    "Clock",
    "DeterministicClock",
    "MAX_DEPTH",
    "OrgTree",
    "OrgUnit",
    "OrgUnitType",
    "PermissionTable",
    "Resource",
    "Role",
    "ScopedUser",
    "StepStatus",
    "SystemClock",
    "Threshold",
    "ThresholdTable",
    "Unlimited",
    "derive_status",
]
