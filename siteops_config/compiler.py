"""
Configuration Compiler (``siteops_config.compiler``).

Turns a validated ``AccessConfigurationSet`` into the frozen runtime
artifact, ``AccessControlConfig``: the permission table, the threshold
table and the approval chain table, expressed in kernel domain types.
"""

from __future__ import annotations

from dataclasses import dataclass

from siteops_config.schema import AccessConfigurationSet
from siteops_config.validator import parse_limit
from siteops_kernel.domain.access import (
    UNLIMITED,
    Action,
    PermissionTable,
    Resource,
    Threshold,
    ThresholdTable,
)
from siteops_kernel.domain.approval import ApprovalChainTable, ApprovalType
from siteops_kernel.domain.org import Role


@dataclass(frozen=True)
class AccessControlConfig:
    """Frozen runtime configuration.  Load once, pass explicitly."""

    config_id: str
    version: int
    checksum: str
    permissions: PermissionTable
    thresholds: ThresholdTable
    chains: ApprovalChainTable


def compile_access_config(config: AccessConfigurationSet) -> AccessControlConfig:
    """
    Compile a validated configuration set.

    Preconditions:
        - ``validate_configuration(config).is_valid`` is True; unknown enum
          values raise ``ValueError`` here otherwise.
    """
    grants: dict[Role, dict[Resource, frozenset[Action]]] = {}
    for role_def in config.permissions.roles:
        grants[Role(role_def.role)] = {
            Resource(resource): frozenset(Action(a) for a in actions)
            for resource, actions in role_def.grants
        }

    limits: dict[Role, dict[str, Threshold]] = {}
    for role_def in config.thresholds.roles:
        by_category: dict[str, Threshold] = {}
        for category, raw in role_def.limits:
            parsed = parse_limit(raw)
            by_category[category] = UNLIMITED if parsed is None else parsed
        limits[Role(role_def.role)] = by_category

    chains = {
        ApprovalType(chain.approval_type): tuple(Role(r) for r in chain.roles)
        for chain in config.chains
    }

    return AccessControlConfig(
        config_id=config.config_id,
        version=config.version,
        checksum=config.checksum,
        permissions=PermissionTable(
            grants=grants,
            wildcard_roles=frozenset(Role(r) for r in config.permissions.wildcard_roles),
        ),
        thresholds=ThresholdTable(
            limits=limits,
            ladder=tuple(Role(r) for r in config.thresholds.ladder),
        ),
        chains=ApprovalChainTable(chains=chains),
    )
