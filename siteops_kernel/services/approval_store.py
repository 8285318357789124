"""
siteops_kernel.services.approval_store -- SQL approval-request persistence.

Responsibility:
    Stores approval requests as one row per request (JSON document plus
    indexed projections) and performs the version-stamped
    compare-and-swap write that serializes concurrent decisions.

Architecture position:
    Kernel > Services.  Implements the ``ApprovalRequestStore`` port.

Invariants enforced:
    - Writes after creation are ``UPDATE ... WHERE request_id = :id AND
      version = :expected``; zero affected rows means another writer won.
    - The document's version always equals the row's version column.

Failure modes:
    - ApprovalRequestNotFoundError if request_id not found.
    - ConcurrencyConflictError when the stored version is not the expected one.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from siteops_kernel.db.engine import session_scope
from siteops_kernel.domain.approval import ApprovalRequest, ApprovalStatus
from siteops_kernel.domain.org import Role
from siteops_kernel.exceptions import (
    ApprovalRequestNotFoundError,
    ConcurrencyConflictError,
)
from siteops_kernel.logging_config import get_logger
from siteops_kernel.models.approval import ApprovalRequestModel

logger = get_logger("services.approval_store")


class SqlApprovalRequestStore:
    """``ApprovalRequestStore`` backed by SQLAlchemy.

    Each call runs in its own short transaction from ``session_factory``.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, request_id: str) -> ApprovalRequest:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(ApprovalRequestModel).where(
                    ApprovalRequestModel.request_id == request_id
                )
            ).scalar_one_or_none()
            if model is None:
                raise ApprovalRequestNotFoundError(request_id)
            return model.to_dto()

    def add(self, request: ApprovalRequest) -> None:
        with session_scope(self._session_factory) as session:
            session.add(ApprovalRequestModel.from_dto(request))

    def compare_and_swap(
        self,
        request: ApprovalRequest,
        expected_version: int,
    ) -> None:
        values = ApprovalRequestModel.columns_for(request)
        del values["request_id"]
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(ApprovalRequestModel)
                .where(ApprovalRequestModel.request_id == request.id)
                .where(ApprovalRequestModel.version == expected_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return
            actual = session.execute(
                select(ApprovalRequestModel.version).where(
                    ApprovalRequestModel.request_id == request.id
                )
            ).scalar_one_or_none()

        if actual is None:
            raise ApprovalRequestNotFoundError(request.id)
        logger.warning(
            "approval_cas_conflict",
            extra={
                "approval_request_id": request.id,
                "expected_version": expected_version,
                "actual_version": actual,
            },
        )
        raise ConcurrencyConflictError(request.id, expected_version, actual)

    def list_pending(
        self,
        role: Role,
        org_unit_ids: frozenset[str],
    ) -> list[ApprovalRequest]:
        if not org_unit_ids:
            return []
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(ApprovalRequestModel)
                .where(ApprovalRequestModel.status == ApprovalStatus.PENDING.value)
                .where(ApprovalRequestModel.current_role == Role(role).value)
                .where(ApprovalRequestModel.org_unit_id.in_(sorted(org_unit_ids)))
                .order_by(ApprovalRequestModel.created_at, ApprovalRequestModel.request_id)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def list_for_subject(self, subject_id: str) -> list[ApprovalRequest]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(ApprovalRequestModel)
                .where(ApprovalRequestModel.subject_id == subject_id)
                .order_by(ApprovalRequestModel.created_at, ApprovalRequestModel.request_id)
            ).scalars().all()
            return [m.to_dto() for m in models]
