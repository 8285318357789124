"""
Module: siteops_kernel.models.approval
Responsibility: ORM persistence for approval requests.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Each request is one row: the self-contained JSON ``document`` is the source
of truth, and the remaining columns are indexed projections of it used for
lookups (pending-by-role, history-by-subject) and for the version
compare-and-swap.

Invariants enforced:
    - Status values limited by a check constraint.
    - ``request_id`` unique.
    - ``version`` is non-negative; writes go through
      ``UPDATE ... WHERE version = :expected`` in the store.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from siteops_kernel.db.base import Base
from siteops_kernel.domain.approval import ApprovalRequest


class ApprovalRequestModel(Base):
    """Persistent approval request."""

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="ck_approval_requests_valid_status",
        ),
        CheckConstraint("version >= 0", name="ck_approval_requests_version"),
        Index("ix_approval_requests_pending", "status", "current_role", "org_unit_id"),
        Index("ix_approval_requests_subject", "subject_id", "created_at"),
    )

    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    approval_type: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    org_unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    initiator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    current_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    current_step_index: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.request_id} {self.approval_type} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Rebuild the frozen domain request from the stored document."""
        return ApprovalRequest.from_document(self.document)

    @staticmethod
    def columns_for(request: ApprovalRequest) -> dict[str, Any]:
        """Indexed column values projected from ``request``."""
        current_role = request.current_role
        return {
            "request_id": request.id,
            "approval_type": request.type.value,
            "subject_id": request.subject_id,
            "org_unit_id": request.org_unit_id,
            "initiator_id": request.initiator_id,
            "amount": request.amount,
            "category": request.category,
            "status": request.status.value,
            "current_role": current_role.value if current_role else None,
            "current_step_index": request.current_step_index,
            "version": request.version,
            "document": request.to_document(),
            "created_at": request.created_at,
            "completed_at": request.completed_at,
        }

    @classmethod
    def from_dto(cls, request: ApprovalRequest) -> ApprovalRequestModel:
        return cls(**cls.columns_for(request))
