"""
AccessConfigurationSet schema.

Defines the human-authored, reviewable source artifact for access-control
configuration.  YAML fragments are parsed into these types by the loader,
checked by the validator, and compiled into an ``AccessControlConfig`` by
the compiler.

Key distinction:
  AccessConfigurationSet = source artifact (strings as authored in YAML)
  AccessControlConfig    = runtime artifact (closed enums, Decimals, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass

UNLIMITED_KEYWORD = "unlimited"


@dataclass(frozen=True)
class RoleGrantDef:
    """YAML-authored grants for one role: ``resource -> actions``."""

    role: str
    grants: tuple[tuple[str, tuple[str, ...]], ...] = ()


@dataclass(frozen=True)
class PermissionsDef:
    wildcard_roles: tuple[str, ...] = ()
    roles: tuple[RoleGrantDef, ...] = ()


@dataclass(frozen=True)
class RoleLimitsDef:
    """YAML-authored limits for one role: ``category -> amount | 'unlimited'``."""

    role: str
    limits: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ThresholdsDef:
    ladder: tuple[str, ...] = ()
    roles: tuple[RoleLimitsDef, ...] = ()


@dataclass(frozen=True)
class ApprovalChainDef:
    """YAML-authored ordered role sequence for an approval type."""

    approval_type: str
    roles: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class AccessConfigurationSet:
    """Complete source configuration, as loaded from one set directory."""

    config_id: str
    version: int
    permissions: PermissionsDef
    thresholds: ThresholdsDef
    chains: tuple[ApprovalChainDef, ...] = ()
    description: str = ""
    checksum: str = ""
