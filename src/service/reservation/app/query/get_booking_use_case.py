from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import ForbiddenError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.service.booking_ledger import BookingLedger
from src.service.reservation.domain.entity.booking_entity import Booking


class GetBookingUseCase:
    def __init__(self, *, booking_ledger: BookingLedger) -> None:
        self.booking_ledger = booking_ledger

    @classmethod
    @inject
    def depends(
        cls,
        booking_ledger: BookingLedger = Depends(Provide[Container.booking_ledger]),
    ) -> Self:
        return cls(booking_ledger=booking_ledger)

    @Logger.io
    async def execute(self, *, booking_reference: str, user_id: int) -> Booking:
        booking = await self.booking_ledger.get_booking(booking_reference=booking_reference)
        if booking is None:
            raise NotFoundError('Booking not found')
        if booking.user_id != user_id:
            raise ForbiddenError('Only the booking owner can view this booking')
        return booking
