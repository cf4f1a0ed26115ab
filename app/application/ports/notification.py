from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.booking import Booking


class NotificationSenderPort(ABC):
    @abstractmethod
    def send_booking_confirmation(self, booking: Booking) -> None:
        """Send the confirmation email for a confirmed booking. Raises on failure."""
        raise NotImplementedError
