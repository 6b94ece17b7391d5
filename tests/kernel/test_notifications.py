"""Tests for the best-effort Notifier."""

from uuid import uuid4

from rental_kernel.exceptions import NotificationDeliveryError
from rental_kernel.services.notifications import (
    NotificationEvent,
    NotificationSink,
    Notifier,
    RecordingNotificationSink,
)


class ExplodingSink(NotificationSink):
    def notify(self, recipient_id, event, payload):
        raise NotificationDeliveryError(str(recipient_id), event.value, "push gateway down")


class TestNotifier:
    def test_delivers_payload_shape(self):
        sink = RecordingNotificationSink()
        recipient = uuid4()

        assert Notifier(sink).notify(
            recipient, NotificationEvent.PAYMENT_DUE, "Payment Due", "Pay up", payment_id="p1"
        )

        [sent] = sink.sent
        assert sent.recipient_id == recipient
        assert sent.event == NotificationEvent.PAYMENT_DUE
        assert sent.payload == {"title": "Payment Due", "message": "Pay up", "data": {"payment_id": "p1"}}

    def test_missing_recipient_dropped(self, captured_logs):
        sink = RecordingNotificationSink()
        assert Notifier(sink).notify(None, NotificationEvent.PAYMENT_OVERDUE, "t", "m") is False
        assert sink.sent == ()
        assert any(r["message"] == "notification_dropped" for r in captured_logs())

    def test_sink_failure_never_raises(self, captured_logs):
        assert Notifier(ExplodingSink()).notify(uuid4(), NotificationEvent.PAYMENT_DUE, "t", "m") is False
        dropped = [r for r in captured_logs() if r["message"] == "notification_dropped"]
        assert dropped[0]["exc_type"] == "NotificationDeliveryError"
        assert dropped[0]["exc_code"] == "NOTIFICATION_DELIVERY_FAILED"

    def test_default_sink_logs(self, captured_logs):
        Notifier().notify(uuid4(), NotificationEvent.TERMINATION_APPROVED, "Approved", "m")
        sent = [r for r in captured_logs() if r["message"] == "notification_sent"]
        assert sent[0]["event"] == "TerminationApproved"

    def test_recording_sink_filters_and_clears(self):
        sink = RecordingNotificationSink()
        notifier = Notifier(sink)
        notifier.notify(uuid4(), NotificationEvent.PAYMENT_DUE, "a", "b")
        notifier.notify(uuid4(), NotificationEvent.PAYMENT_REMINDER, "a", "b")

        assert len(sink.of_event(NotificationEvent.PAYMENT_REMINDER)) == 1
        sink.clear()
        assert sink.sent == ()
