"""
siteops_config -- single public entrypoint for access-control configuration.

Responsibility:
    Provides the ONLY way to obtain the permission, threshold and approval
    chain tables at runtime through ``get_active_config()``.  Returns an
    ``AccessControlConfig`` -- the sole runtime artifact.  YAML loading is
    internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven, validated before use.  This package sits
    above ``siteops_kernel``; the kernel MUST NEVER import from
    ``siteops_config``.  The compiled tables are kernel domain types and
    are passed explicitly to engines and services.

Failure modes:
    - ``FileNotFoundError`` -- the configuration set directory or one of
      its fragments is missing.
    - ``ValueError`` -- schema or structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``access_config_loaded`` log entry containing the config_id, version
    and checksum.
"""

from __future__ import annotations

from pathlib import Path

from siteops_config.compiler import AccessControlConfig, compile_access_config
from siteops_config.loader import load_configuration_set
from siteops_config.validator import validate_configuration
from siteops_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration set shipped with the package
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets" / "default"


def get_active_config(config_dir: Path | None = None) -> AccessControlConfig:
    """The ONLY public configuration entrypoint.

    Non-goals:
        - This function does NOT cache; callers load once at startup and
          hold the returned config for the lifetime of the process.

    Args:
        config_dir: Override path to a configuration set directory.
            Defaults to siteops_config/sets/default/.

    Returns:
        AccessControlConfig -- the sole runtime artifact.

    Raises:
        FileNotFoundError: If the set directory or a fragment is missing.
        ValueError: If configuration validation fails.
    """
    set_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR

    config_set = load_configuration_set(set_dir)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning("access_config_warning", extra={"detail": warning})
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    config = compile_access_config(config_set)

    _logger.info(
        "access_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "approval_types": len(config.chains.chains),
        },
    )
    return config


__all__ = [
    "AccessControlConfig",
    "get_active_config",
]
