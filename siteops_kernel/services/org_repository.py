"""
siteops_kernel.services.org_repository -- SQL org hierarchy persistence.

Responsibility:
    Loads a tenant's flat ``org_units`` rows into an ``OrgTree`` snapshot and
    applies unit mutations.  Implements the ``OrgTreeSource`` port.

Invariants enforced:
    - A mutation is written only if the resulting snapshot is a valid
      forest (``OrgTree`` construction succeeds), so cycles and dangling
      parents never reach the table.
    - After every committed mutation, registered listeners are called with
      the tenant id (scope caches subscribe here).

Failure modes:
    - CorruptHierarchyError if stored rows, or a proposed mutation, do not
      form a valid forest.
    - OrgUnitNotFoundError when removing an unknown unit.
    - ValueError when removing a unit that still has children.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from siteops_kernel.db.engine import session_scope
from siteops_kernel.domain.org import OrgUnit
from siteops_kernel.domain.org_tree import DEFAULT_TENANT, OrgTree
from siteops_kernel.exceptions import OrgUnitNotFoundError
from siteops_kernel.logging_config import get_logger
from siteops_kernel.models.org_unit import OrgUnitModel

logger = get_logger("services.org_repository")

HierarchyListener = Callable[[str], None]


class SqlOrgUnitRepository:
    """Flat ``org_units`` table with change notification."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._listeners: list[HierarchyListener] = []

    def add_listener(self, listener: HierarchyListener) -> None:
        self._listeners.append(listener)

    def load_tree(self, tenant_id: str = DEFAULT_TENANT) -> OrgTree:
        with session_scope(self._session_factory) as session:
            units = [m.to_dto() for m in self._rows(session, tenant_id)]
        return OrgTree(units, tenant_id=tenant_id)

    def upsert(self, unit: OrgUnit, tenant_id: str = DEFAULT_TENANT) -> OrgTree:
        """Insert or update ``unit``; returns the new snapshot."""
        with session_scope(self._session_factory) as session:
            rows = {m.unit_id: m for m in self._rows(session, tenant_id)}
            proposed = {uid: m.to_dto() for uid, m in rows.items()}
            proposed[unit.id] = unit
            tree = OrgTree(proposed.values(), tenant_id=tenant_id)

            model = rows.get(unit.id)
            if model is None:
                model = OrgUnitModel(tenant_id=tenant_id, unit_id=unit.id)
                session.add(model)
            model.apply(unit)

        logger.info(
            "org_unit_saved",
            extra={
                "tenant_id": tenant_id,
                "unit_id": unit.id,
                "unit_type": unit.type.value,
                "parent_id": unit.parent_id,
            },
        )
        self._notify(tenant_id)
        return tree

    def remove(self, unit_id: str, tenant_id: str = DEFAULT_TENANT) -> OrgTree:
        """Delete a leaf unit; returns the new snapshot."""
        with session_scope(self._session_factory) as session:
            rows = {m.unit_id: m for m in self._rows(session, tenant_id)}
            model = rows.pop(unit_id, None)
            if model is None:
                raise OrgUnitNotFoundError(unit_id)
            if any(m.parent_id == unit_id for m in rows.values()):
                raise ValueError(f"Org unit {unit_id} still has children")
            tree = OrgTree((m.to_dto() for m in rows.values()), tenant_id=tenant_id)
            session.delete(model)

        logger.info("org_unit_removed", extra={"tenant_id": tenant_id, "unit_id": unit_id})
        self._notify(tenant_id)
        return tree

    @staticmethod
    def _rows(session: Session, tenant_id: str) -> list[OrgUnitModel]:
        return list(
            session.execute(
                select(OrgUnitModel)
                .where(OrgUnitModel.tenant_id == tenant_id)
                .order_by(OrgUnitModel.unit_id)
            ).scalars()
        )

    def _notify(self, tenant_id: str) -> None:
        for listener in self._listeners:
            listener(tenant_id)
