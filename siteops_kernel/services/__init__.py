"""Kernel services - persistence adapters and the approval chain service."""

from siteops_kernel.services.approval_chain_service import ApprovalChainService
from siteops_kernel.services.approval_store import SqlApprovalRequestStore
from siteops_kernel.services.directory import InMemoryUserDirectory
from siteops_kernel.services.notifications import (
    LoggingNotificationDispatcher,
    RecordingNotificationDispatcher,
)
from siteops_kernel.services.org_repository import SqlOrgUnitRepository

__all__ = [
    "ApprovalChainService",
    "InMemoryUserDirectory",
    "LoggingNotificationDispatcher",
    "RecordingNotificationDispatcher",
    "SqlApprovalRequestStore",
    "SqlOrgUnitRepository",
]
