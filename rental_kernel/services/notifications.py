"""
Notification sink -- deliver-or-drop side channel.

Responsibility:
    Defines the narrow interface the core uses to tell tenants and managers
    about payment and termination events, plus the ``Notifier`` wrapper that
    guarantees a failing sink never fails the caller.

Architecture position:
    Kernel > Services.  The real transport (SSE, e-mail, push) lives outside
    this repository and implements ``NotificationSink``.

Invariants enforced:
    - ``Notifier.notify`` never raises.  Sink failures are logged as
      ``notification_dropped`` and discarded.
    - Services call the notifier only after their transaction committed.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from rental_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationEvent(str, Enum):
    PAYMENT_DUE = "PaymentDue"
    PAYMENT_REMINDER = "PaymentReminder"
    PAYMENT_RECEIVED = "PaymentReceived"
    PAYMENT_OVERDUE = "PaymentOverdue"
    TERMINATION_REQUESTED = "TerminationRequest"
    TERMINATION_APPROVED = "TerminationApproved"
    TERMINATION_REJECTED = "TerminationRejected"


class NotificationSink(ABC):
    """
    Transport-agnostic sink.

    Contract:
        ``notify`` should return quickly.  Implementations may raise; the
        core always goes through ``Notifier`` which absorbs the failure.
    """

    @abstractmethod
    def notify(
        self,
        recipient_id: UUID,
        event: NotificationEvent,
        payload: dict[str, Any],
    ) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Default sink: writes each notification to the structured log."""

    def notify(self, recipient_id, event, payload) -> None:
        logger.info(
            "notification_sent",
            extra={
                "recipient_id": str(recipient_id),
                "event": event.value,
                "title": payload.get("title"),
            },
        )


@dataclass(frozen=True)
class SentNotification:
    recipient_id: UUID
    event: NotificationEvent
    payload: dict[str, Any] = field(default_factory=dict)


class RecordingNotificationSink(NotificationSink):
    """Keeps every notification in memory.  Used by tests and local runs."""

    def __init__(self) -> None:
        self._sent: list[SentNotification] = []
        self._lock = threading.Lock()

    def notify(self, recipient_id, event, payload) -> None:
        with self._lock:
            self._sent.append(SentNotification(recipient_id, event, dict(payload)))

    @property
    def sent(self) -> tuple[SentNotification, ...]:
        with self._lock:
            return tuple(self._sent)

    def of_event(self, event: NotificationEvent) -> tuple[SentNotification, ...]:
        return tuple(n for n in self.sent if n.event == event)

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()


class Notifier:
    """
    Best-effort front for a ``NotificationSink``.

    Guarantees:
        - ``notify`` returns True when the sink accepted the message and
          False when it raised; it never propagates the exception.
    """

    def __init__(self, sink: NotificationSink | None = None):
        self._sink = sink or LoggingNotificationSink()

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def notify(
        self,
        recipient_id: UUID | None,
        event: NotificationEvent,
        title: str,
        message: str,
        **data: Any,
    ) -> bool:
        if recipient_id is None:
            logger.warning(
                "notification_dropped",
                extra={"event": event.value, "reason": "no recipient"},
            )
            return False

        payload = {"title": title, "message": message, "data": data}
        try:
            self._sink.notify(recipient_id, event, payload)
        except Exception:
            logger.warning(
                "notification_dropped",
                extra={"recipient_id": str(recipient_id), "event": event.value},
                exc_info=True,
            )
            return False
        return True
