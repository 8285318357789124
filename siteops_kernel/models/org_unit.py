"""
Module: siteops_kernel.models.org_unit
Responsibility: ORM persistence for the organizational hierarchy.

Units are stored flat, one row per unit with a ``parent_id`` reference to
another unit of the same tenant.  The tree is assembled in memory by
``OrgTree``; there are no nested structures or recursive queries here.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from siteops_kernel.db.base import Base
from siteops_kernel.domain.org import OrgUnit, OrgUnitType


class OrgUnitModel(Base):
    """Persistent org unit."""

    __tablename__ = "org_units"

    __table_args__ = (
        UniqueConstraint("tenant_id", "unit_id", name="uq_org_units_tenant_unit"),
        CheckConstraint(
            "unit_type IN ('PMO', 'AREA', 'PROJECT', 'ZONE')",
            name="ck_org_units_valid_type",
        ),
        Index("ix_org_units_parent", "tenant_id", "parent_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<OrgUnit {self.tenant_id}/{self.unit_id} {self.unit_type} {self.name!r}>"

    def to_dto(self) -> OrgUnit:
        return OrgUnit(
            id=self.unit_id,
            type=OrgUnitType(self.unit_type),
            name=self.name,
            parent_id=self.parent_id,
            code=self.code,
            region=self.region,
        )

    def apply(self, unit: OrgUnit) -> None:
        """Copy mutable fields from ``unit`` onto this row."""
        self.unit_type = unit.type.value
        self.name = unit.name
        self.code = unit.code
        self.region = unit.region
        self.parent_id = unit.parent_id
