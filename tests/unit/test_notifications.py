"""
Unit tests for notification dispatch: delivery failures never propagate.
"""

from uuid import uuid4

from procurement_kernel.services.notifications import (
    LoggingNotifier,
    NotificationType,
    dispatch_notification,
)


class ExplodingNotifier:
    def notify(self, notification):
        raise ConnectionError("smtp down")


class TestDispatch:
    def test_delivered(self, notifier):
        user_id, ref = uuid4(), uuid4()
        assert dispatch_notification(
            notifier, user_id, NotificationType.PO_SENT, "PO sent", "PO-2024-0001", reference_id=ref
        )
        (sent,) = notifier.sent
        assert sent.user_id == user_id
        assert sent.reference_id == ref

    def test_missing_recipient_is_skipped(self, notifier):
        assert not dispatch_notification(notifier, None, NotificationType.PO_SENT, "t", "m")
        assert notifier.sent == []

    def test_failure_is_logged_not_raised(self, captured_logs):
        assert not dispatch_notification(
            ExplodingNotifier(), uuid4(), NotificationType.RFQ_INVITATION, "t", "m"
        )
        assert any(r["message"] == "notification_delivery_failed" for r in captured_logs())

    def test_logging_notifier(self, captured_logs):
        dispatch_notification(LoggingNotifier(), uuid4(), NotificationType.INVOICE_MATCHED, "t", "m")
        (record,) = [r for r in captured_logs() if r["message"] == "notification_sent"]
        assert record["notification_type"] == "INVOICE_MATCHED"
