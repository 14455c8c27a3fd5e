"""Push notification bookkeeping."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .events import OmetriaEventType


logger = logging.getLogger(__name__)


@dataclass
class NotificationHandler:
    """
    Turns notification callbacks into tracked events.

    Notifications that arrive while the app is inactive are buffered and
    reported as received on the next foreground transition.
    """
    track: Callable[[OmetriaEventType, Mapping[str, Any]], None]

    _delivered: list[str] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def handle_received_notification(self, notification_id: str) -> None:
        self.track(OmetriaEventType.NOTIFICATION_RECEIVED, {"notificationId": notification_id})

    def handle_notification_response(self, notification_id: str) -> None:
        self.track(OmetriaEventType.NOTIFICATION_INTERACTED, {"notificationId": notification_id})

    def record_delivered_notification(self, notification_id: str) -> None:
        """Remember a notification delivered while the app was inactive."""
        with self._lock:
            if notification_id not in self._delivered:
                self._delivered.append(notification_id)

    def process_delivered_notifications(self) -> int:
        """Report buffered notifications once. Returns how many were reported."""
        with self._lock:
            delivered, self._delivered = self._delivered, []
        for notification_id in delivered:
            self.handle_received_notification(notification_id)
        if delivered:
            logger.debug(f"Processed {len(delivered)} delivered notifications")
        return len(delivered)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._delivered)
