"""
Module: siteops_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    evaluation engines.  This is the canonical import surface for the
    service layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import siteops_kernel domain types (and sibling engine modules).

Invariants enforced:
    - Purity: engines never read the clock, the database or configuration
      files.  Trees, tables and users are passed in explicitly.
    - Decimal-only arithmetic for amounts.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from siteops_engines import ApprovalPolicy, PermissionEngine, ScopeResolver
"""

from siteops_engines.approval_policy import ApprovalPolicy
from siteops_engines.approval_stats import ApprovalSummary, summarize_requests
from siteops_engines.permissions import AccessDecision, PermissionEngine
from siteops_engines.scope import ScopeResolver, ScopeSelection

__all__ = [
    "AccessDecision",
    "ApprovalPolicy",
    "ApprovalSummary",
    "PermissionEngine",
    "ScopeResolver",
    "ScopeSelection",
    "summarize_requests",
]
