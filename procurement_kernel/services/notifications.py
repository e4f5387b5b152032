"""
Notifications -- fire-and-forget messages to users.

Responsibility:
    Define the ``Notifier`` collaborator interface and the dispatch helper
    services call after a state change (approval requested, PO sent, RFQ
    invitation, invoice matched, ...).

Invariants enforced:
    - Delivery failure never propagates.  ``dispatch_notification`` logs the
      failure and returns False, so the calling transaction is unaffected.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

from procurement_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationType(Enum):
    APPROVAL_REQUESTED = "APPROVAL_REQUESTED"
    REQUISITION_APPROVED = "REQUISITION_APPROVED"
    REQUISITION_REJECTED = "REQUISITION_REJECTED"
    INFO_REQUESTED = "INFO_REQUESTED"
    APPROVAL_ESCALATED = "APPROVAL_ESCALATED"
    PO_SENT = "PO_SENT"
    RFQ_INVITATION = "RFQ_INVITATION"
    RFQ_AWARDED = "RFQ_AWARDED"
    INVOICE_MATCHED = "INVOICE_MATCHED"
    INVOICE_DISPUTED = "INVOICE_DISPUTED"


@dataclass(frozen=True)
class Notification:
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    reference_id: UUID | None = None


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Default notifier: writes each notification to the structured log."""

    def notify(self, notification: Notification) -> None:
        logger.info(
            "notification_sent",
            extra={
                "user_id": str(notification.user_id),
                "notification_type": notification.type.value,
                "title": notification.title,
                "reference_id": str(notification.reference_id) if notification.reference_id else None,
            },
        )


def dispatch_notification(
    notifier: Notifier,
    user_id: UUID | None,
    type: NotificationType,
    title: str,
    message: str,
    reference_id: UUID | None = None,
) -> bool:
    """Send one notification; return False (after logging) if delivery failed."""
    if user_id is None:
        return False
    try:
        notifier.notify(
            Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                reference_id=reference_id,
            )
        )
    except Exception:
        logger.warning(
            "notification_delivery_failed",
            extra={
                "user_id": str(user_id),
                "notification_type": type.value,
                "reference_id": str(reference_id) if reference_id else None,
            },
            exc_info=True,
        )
        return False
    return True
