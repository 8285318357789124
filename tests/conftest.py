"""
Pytest fixtures for the siteops test suite.

Provides:
- Structured logging configuration and log capture
- An in-memory SQLite database per test (any SQLAlchemy URL works; set
  SITEOPS_DATABASE_URL to run the persistence tests against PostgreSQL)
- A sample organization, its users and the default access configuration
- A fully wired ApprovalChainService
"""

import json
import logging
from io import StringIO

import pytest

from siteops_config import get_active_config
from siteops_engines.approval_policy import ApprovalPolicy
from siteops_engines.scope import ScopeResolver
from siteops_kernel.db.engine import (
    DatabaseSettings,
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine,
    reset_engine,
)
from siteops_kernel.domain.clock import DeterministicClock
from siteops_kernel.domain.org import OrgUnit, OrgUnitType, Role, ScopedUser
from siteops_kernel.domain.org_tree import OrgTree
from siteops_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from siteops_kernel.services import (
    ApprovalChainService,
    InMemoryUserDirectory,
    RecordingNotificationDispatcher,
    SqlApprovalRequestStore,
    SqlOrgUnitRepository,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture siteops_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, approval_service):
            approval_service.create_approval_chain(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_chain_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("siteops_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Sample organization
# =============================================================================
#
#   P1 (PMO)
#   +-- A1 (AREA, Tripoli)
#   |   +-- J1 (PROJECT)
#   |   |   +-- Z1 (ZONE)
#   |   |   +-- Z2 (ZONE)
#   |   +-- J2 (PROJECT)
#   +-- A2 (AREA, Benghazi)
#       +-- J3 (PROJECT)
#           +-- Z3 (ZONE)


def make_unit(
    unit_id: str,
    unit_type: OrgUnitType,
    parent_id: str | None = None,
    name: str | None = None,
    region: str | None = None,
) -> OrgUnit:
    return OrgUnit(
        id=unit_id,
        type=unit_type,
        name=name or f"{unit_type.value.title()} {unit_id}",
        parent_id=parent_id,
        code=unit_id,
        region=region,
    )


SAMPLE_UNITS = (
    make_unit("P1", OrgUnitType.PMO, name="Head Office"),
    make_unit("A1", OrgUnitType.AREA, "P1", name="West", region="Tripoli"),
    make_unit("J1", OrgUnitType.PROJECT, "A1", name="Ring Road"),
    make_unit("Z1", OrgUnitType.ZONE, "J1", name="North Zone"),
    make_unit("Z2", OrgUnitType.ZONE, "J1", name="South Zone"),
    make_unit("J2", OrgUnitType.PROJECT, "A1", name="Port Expansion"),
    make_unit("A2", OrgUnitType.AREA, "P1", name="East", region="Benghazi"),
    make_unit("J3", OrgUnitType.PROJECT, "A2", name="Hospital"),
    make_unit("Z3", OrgUnitType.ZONE, "J3", name="Wing B"),
)

SAMPLE_USERS = (
    ScopedUser("u-pmo", Role.PMO, "P1"),
    ScopedUser("u-admin", Role.ADMIN, "P1"),
    ScopedUser("u-area", Role.AREA_MANAGER, "A1"),
    ScopedUser("u-pm1", Role.PROJECT_MANAGER, "J1"),
    ScopedUser("u-pm3", Role.PROJECT_MANAGER, "J3"),
    ScopedUser("u-zone1", Role.ZONE_MANAGER, "Z1"),
    ScopedUser("u-site1", Role.SITE_MANAGER, "Z1"),
    ScopedUser("u-site3", Role.SITE_MANAGER, "Z3"),
    ScopedUser("u-eng1", Role.SITE_ENGINEER, "Z1"),
    ScopedUser("u-fin", Role.FINANCE_MANAGER, "P1"),
    ScopedUser("u-fin-east", Role.FINANCE_MANAGER, "A2"),
    ScopedUser("u-cashier", Role.CASHIER, "J2", assignments=("J3",)),
    ScopedUser("u-viewer", Role.VIEWER, "Z2"),
)


@pytest.fixture
def sample_units() -> tuple[OrgUnit, ...]:
    return SAMPLE_UNITS


@pytest.fixture
def org_tree(sample_units) -> OrgTree:
    return OrgTree(sample_units)


@pytest.fixture
def users() -> dict[str, ScopedUser]:
    return {u.id: u for u in SAMPLE_USERS}


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(SAMPLE_USERS)


@pytest.fixture(scope="session")
def access_config():
    """The default configuration set shipped with siteops_config."""
    return get_active_config()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session_factory():
    """Fresh schema per test; in-memory SQLite unless SITEOPS_DATABASE_URL is set."""
    init_engine(DatabaseSettings.from_env())
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def org_repository(session_factory, sample_units) -> SqlOrgUnitRepository:
    repo = SqlOrgUnitRepository(session_factory)
    for unit in sample_units:
        repo.upsert(unit)
    return repo


@pytest.fixture
def approval_store(session_factory) -> SqlApprovalRequestStore:
    return SqlApprovalRequestStore(session_factory)


@pytest.fixture
def dispatcher() -> RecordingNotificationDispatcher:
    return RecordingNotificationDispatcher()


@pytest.fixture
def scope_resolver(org_repository) -> ScopeResolver:
    resolver = ScopeResolver()
    org_repository.add_listener(resolver.invalidate)
    return resolver


@pytest.fixture
def approval_service(
    directory,
    org_repository,
    approval_store,
    dispatcher,
    scope_resolver,
    access_config,
    deterministic_clock,
) -> ApprovalChainService:
    return ApprovalChainService(
        directory=directory,
        tree_source=org_repository,
        store=approval_store,
        dispatcher=dispatcher,
        scope=scope_resolver,
        chains=access_config.chains,
        thresholds=ApprovalPolicy(access_config.thresholds),
        clock=deterministic_clock,
    )
