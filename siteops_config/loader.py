"""
Configuration Loader (``siteops_config.loader``).

Responsibility
--------------
Loads the YAML fragment files of one configuration set and parses them
into typed ``siteops_config.schema`` dataclass instances.  Runtime callers
use ``siteops_config.get_active_config()`` instead of calling this directly.

Expected layout of a set directory::

    config.yaml            config_id, version, description
    permissions.yaml       wildcard_roles, roles: {ROLE: {resource: [actions]}}
    thresholds.yaml        ladder: [ROLE...], limits: {ROLE: {category: amount}}
    approval_chains.yaml   chains: {approval-type: [ROLE...]}

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong shapes  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from siteops_config.schema import (
    AccessConfigurationSet,
    ApprovalChainDef,
    PermissionsDef,
    RoleGrantDef,
    RoleLimitsDef,
    ThresholdsDef,
)
from siteops_kernel.utils.hashing import hash_payload

FRAGMENT_FILES = (
    "config.yaml",
    "permissions.yaml",
    "thresholds.yaml",
    "approval_chains.yaml",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _as_str_list(value: Any, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"{where}: expected a list, got {type(value).__name__}")
    return tuple(str(v) for v in value)


def _as_mapping(value: Any, where: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def parse_permissions(data: dict[str, Any]) -> PermissionsDef:
    """Parse ``permissions.yaml`` contents."""
    roles = []
    for role, grants in _as_mapping(data.get("roles"), "roles").items():
        by_resource = _as_mapping(grants, f"roles.{role}")
        roles.append(RoleGrantDef(
            role=str(role),
            grants=tuple(
                (str(resource), _as_str_list(actions, f"roles.{role}.{resource}"))
                for resource, actions in by_resource.items()
            ),
        ))
    return PermissionsDef(
        wildcard_roles=_as_str_list(data.get("wildcard_roles"), "wildcard_roles"),
        roles=tuple(roles),
    )


def parse_thresholds(data: dict[str, Any]) -> ThresholdsDef:
    """Parse ``thresholds.yaml`` contents.

    Amounts are kept as strings here (YAML ints/floats are stringified) so
    the compiler can build exact Decimals.
    """
    roles = []
    for role, limits in _as_mapping(data["limits"], "limits").items():
        by_category = _as_mapping(limits, f"limits.{role}")
        roles.append(RoleLimitsDef(
            role=str(role),
            limits=tuple(
                (str(category), str(amount)) for category, amount in by_category.items()
            ),
        ))
    return ThresholdsDef(
        ladder=_as_str_list(data["ladder"], "ladder"),
        roles=tuple(roles),
    )


def parse_chains(data: dict[str, Any]) -> tuple[ApprovalChainDef, ...]:
    """Parse ``approval_chains.yaml`` contents.

    Each chain is either a plain role list or a mapping with ``roles`` and
    an optional ``description``.
    """
    chains = []
    for approval_type, entry in _as_mapping(data["chains"], "chains").items():
        if isinstance(entry, dict):
            roles = _as_str_list(entry.get("roles"), f"chains.{approval_type}.roles")
            description = str(entry.get("description", ""))
        else:
            roles = _as_str_list(entry, f"chains.{approval_type}")
            description = ""
        chains.append(ApprovalChainDef(
            approval_type=str(approval_type),
            roles=roles,
            description=description,
        ))
    return tuple(chains)


def compute_checksum(fragments: dict[str, dict[str, Any]]) -> str:
    """Deterministic SHA-256 over the raw fragment contents."""
    return hash_payload(fragments)


def load_configuration_set(set_dir: Path) -> AccessConfigurationSet:
    """
    Load and parse every fragment in ``set_dir``.

    Postconditions:
        - Returns an ``AccessConfigurationSet`` whose ``checksum`` covers
          all fragment contents.
    """
    fragments = {name: load_yaml_file(set_dir / name) for name in FRAGMENT_FILES}
    header = fragments["config.yaml"]

    return AccessConfigurationSet(
        config_id=str(header["config_id"]),
        version=int(header["version"]),
        description=str(header.get("description", "")),
        permissions=parse_permissions(fragments["permissions.yaml"]),
        thresholds=parse_thresholds(fragments["thresholds.yaml"]),
        chains=parse_chains(fragments["approval_chains.yaml"]),
        checksum=compute_checksum(fragments),
    )
