"""
Module: siteops_kernel.db.base
Responsibility: Declarative base for the org-unit and approval-request
    tables: surrogate UUID keys, portable column types, and deterministic
    names for unnamed constraints.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/ or outer layers.

Invariants enforced:
    - Every row has a uuid4 surrogate key; domain ids (unit ids, request
      ids) are separate, uniquely indexed columns.
    - Approval amounts map to Numeric(38, 9), never float.
    - Timestamps are declared timezone-aware.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, MetaData, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Check and unique constraints are named explicitly in the models.
NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID stored as its canonical 36-character string on every backend."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accepts UUID objects or any string form; rejects malformed ids.
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return UUID(value) if value is not None else None


class Base(DeclarativeBase):
    """Declarative base; subclasses get a uuid4 ``id`` primary key."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
