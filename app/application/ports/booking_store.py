from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from app.domain.entities.booking import Booking


class BookingStorePort(ABC):
    @abstractmethod
    def get(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def create(self, booking: Booking) -> Booking:
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Booking:
        """
        Apply fields to one booking atomically and return the updated record.
        When expected is given, every listed field must still hold that value,
        otherwise ConcurrentUpdateError is raised and nothing is written.
        Raises BookingNotFound for an unknown id.
        """
        raise NotImplementedError

    @abstractmethod
    def list_bookings(self, day: date | None = None) -> list[Booking]:
        raise NotImplementedError
