"""
Configuration Validator (``siteops_config.validator``).

Responsibility
--------------
Validates an ``AccessConfigurationSet`` before it is compiled, so that the
runtime tables are exhaustively checked against the closed enumerations.

Invariants enforced
-------------------
* Closed vocabularies -- every role, resource, action and approval type
  named in YAML is a member of the corresponding enum.
* Amounts -- every limit is a non-negative decimal or ``unlimited``.
* Monotonic ladder -- along the ladder, thresholds never decrease for any
  category, and the top rung is ``unlimited`` in every category.
* Chain coverage -- every approval type has a non-empty chain.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``) -> configuration
  MUST NOT be compiled.
* Warnings (e.g. a role with grants that is also a wildcard role) may be
  compiled but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from siteops_config.schema import UNLIMITED_KEYWORD, AccessConfigurationSet
from siteops_kernel.domain.access import Action, Resource
from siteops_kernel.domain.approval import ApprovalType
from siteops_kernel.domain.org import Role

_ROLES = {r.value for r in Role}
_RESOURCES = {r.value for r in Resource}
_ACTIONS = {a.value for a in Action}
_TYPES = {t.value for t in ApprovalType}


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def parse_limit(raw: str) -> Decimal | None:
    """Decimal for a numeric limit, None for ``unlimited``.

    Raises:
        ValueError: for anything else, including negative amounts.
    """
    if raw.strip().lower() == UNLIMITED_KEYWORD:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {raw!r}") from None
    if not value.is_finite() or value < 0:
        raise ValueError(f"limit must be a finite non-negative amount: {raw!r}")
    return value


def validate_configuration(config: AccessConfigurationSet) -> ConfigValidationResult:
    """
    Validate a configuration set.

    Returns:
        ConfigValidationResult with all errors and warnings found.
    """
    result = ConfigValidationResult()
    _validate_permissions(config, result)
    _validate_thresholds(config, result)
    _validate_chains(config, result)
    return result


def _validate_permissions(
    config: AccessConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    wildcard = set(config.permissions.wildcard_roles)
    for role in wildcard - _ROLES:
        result.add_error(f"permissions: unknown wildcard role '{role}'")

    seen: set[str] = set()
    for role_def in config.permissions.roles:
        if role_def.role not in _ROLES:
            result.add_error(f"permissions: unknown role '{role_def.role}'")
        if role_def.role in seen:
            result.add_error(f"permissions: role '{role_def.role}' defined twice")
        seen.add(role_def.role)
        if role_def.role in wildcard:
            result.add_warning(
                f"permissions: role '{role_def.role}' is a wildcard role; "
                "its explicit grants are ignored"
            )
        for resource, actions in role_def.grants:
            if resource not in _RESOURCES:
                result.add_error(
                    f"permissions: role '{role_def.role}' names unknown resource '{resource}'"
                )
            for action in actions:
                if action not in _ACTIONS:
                    result.add_error(
                        f"permissions: role '{role_def.role}' resource '{resource}' "
                        f"names unknown action '{action}'"
                    )


def _validate_thresholds(
    config: AccessConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    thresholds = config.thresholds
    limits: dict[str, dict[str, Decimal | None]] = {}

    for role_def in thresholds.roles:
        if role_def.role not in _ROLES:
            result.add_error(f"thresholds: unknown role '{role_def.role}'")
        parsed: dict[str, Decimal | None] = {}
        for category, raw in role_def.limits:
            try:
                parsed[category] = parse_limit(raw)
            except ValueError as exc:
                result.add_error(
                    f"thresholds: role '{role_def.role}' category '{category}': {exc}"
                )
        limits[role_def.role] = parsed

    if not thresholds.ladder:
        result.add_error("thresholds: ladder must name at least one role")
        return
    if len(set(thresholds.ladder)) != len(thresholds.ladder):
        result.add_error("thresholds: ladder repeats a role")
    for role in thresholds.ladder:
        if role not in _ROLES:
            result.add_error(f"thresholds: unknown ladder role '{role}'")
        elif role not in limits:
            result.add_error(f"thresholds: ladder role '{role}' has no limits")

    categories = sorted({c for by_cat in limits.values() for c in by_cat})
    top = thresholds.ladder[-1]
    for category in categories:
        if category not in limits.get(top, {}) or limits[top][category] is not None:
            result.add_error(
                f"thresholds: top ladder role '{top}' must be unlimited for '{category}'"
            )
        previous: tuple[str, Decimal | None] | None = None
        for role in thresholds.ladder:
            if category not in limits.get(role, {}):
                continue
            current = limits[role][category]
            if previous is not None and _decreases(previous[1], current):
                result.add_error(
                    f"thresholds: ladder not monotonic for '{category}': "
                    f"'{role}' is below '{previous[0]}'"
                )
            previous = (role, current)


def _decreases(before: Decimal | None, after: Decimal | None) -> bool:
    # None encodes unlimited here.
    if before is None:
        return after is not None
    if after is None:
        return False
    return after < before


def _validate_chains(
    config: AccessConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    configured: set[str] = set()
    for chain in config.chains:
        if chain.approval_type not in _TYPES:
            result.add_error(f"chains: unknown approval type '{chain.approval_type}'")
        if chain.approval_type in configured:
            result.add_error(f"chains: approval type '{chain.approval_type}' defined twice")
        configured.add(chain.approval_type)
        if not chain.roles:
            result.add_error(f"chains: approval type '{chain.approval_type}' has no roles")
        for role in chain.roles:
            if role not in _ROLES:
                result.add_error(
                    f"chains: approval type '{chain.approval_type}' names unknown role '{role}'"
                )
    for missing in sorted(_TYPES - configured):
        result.add_error(f"chains: no chain configured for approval type '{missing}'")
