"""Kernel services shared by every procurement module."""

from procurement_kernel.services.notifications import (
    LoggingNotifier,
    Notification,
    NotificationType,
    Notifier,
    dispatch_notification,
)
from procurement_kernel.services.numbering import DocumentNumberService, DocumentPrefix

__all__ = [
    "DocumentNumberService",
    "DocumentPrefix",
    "LoggingNotifier",
    "Notification",
    "NotificationType",
    "Notifier",
    "dispatch_notification",
]
