"""
siteops_kernel.services.notifications -- Reference notification dispatchers.

Delivery is fire-and-forget: the approval service calls ``dispatch`` after a
state transition has been persisted and never retries.  Actual transport
(e-mail, push, websocket) lives outside the kernel.
"""

from __future__ import annotations

from siteops_kernel.domain.approval import ApprovalEvent
from siteops_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class LoggingNotificationDispatcher:
    """Emits each event as a structured ``approval_event`` log record."""

    def dispatch(self, event: ApprovalEvent) -> None:
        logger.info(
            "approval_event",
            extra={
                "event_name": event.name.value,
                "approval_request_id": event.request_id,
                "approval_type": event.approval_type.value,
                "org_unit_id": event.org_unit_id,
                "initiator_id": event.initiator_id,
                "actor_id": event.actor_id,
                "next_role": event.next_role.value if event.next_role else None,
                "subject_id": event.subject_id,
            },
        )


class RecordingNotificationDispatcher:
    """Keeps dispatched events in memory, in order."""

    def __init__(self) -> None:
        self.events: list[ApprovalEvent] = []

    def dispatch(self, event: ApprovalEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name.value for e in self.events]

    def clear(self) -> None:
        self.events.clear()
