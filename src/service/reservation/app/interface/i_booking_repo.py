from abc import ABC, abstractmethod
from typing import Optional

from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.enum import BookingStatus


class IBookingRepo(ABC):
    @abstractmethod
    async def add(self, *, booking: Booking) -> Booking:
        pass

    @abstractmethod
    async def get(self, *, booking_reference: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def exists(self, *, booking_reference: str) -> bool:
        pass

    @abstractmethod
    async def update_status(self, *, booking: Booking) -> Booking:
        """Persist status and payment metadata only; seats are immutable."""
        pass

    @abstractmethod
    async def list_by_user(
        self,
        *,
        user_id: int,
        status: Optional[BookingStatus],
        offset: int,
        limit: int,
    ) -> tuple[list[Booking], int]:
        """Newest first. Returns (page, total)."""
        pass
