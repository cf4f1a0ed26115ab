from __future__ import annotations

import logging

from app.application.ports.notification import NotificationSenderPort
from app.domain.entities.booking import Booking


class MockNotificationSender(NotificationSenderPort):
    def __init__(self) -> None:
        self.sent: list[Booking] = []
        self.attempts = 0
        self.fail = False
        self._logger = logging.getLogger(__name__)

    def send_booking_confirmation(self, booking: Booking) -> None:
        self.attempts += 1
        if self.fail:
            raise RuntimeError("mock email provider unavailable")
        self.sent.append(booking)
        self._logger.info(
            "Mock confirmation email", extra={"booking_id": booking.id, "reason": booking.customer_email}
        )
