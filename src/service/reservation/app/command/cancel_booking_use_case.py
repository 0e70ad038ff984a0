from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.service.booking_ledger import BookingLedger
from src.service.reservation.domain.entity.booking_entity import Booking


class CancelBookingUseCase:
    """
    Cancel a confirmed booking on behalf of its owner.

    The Booking Ledger enforces the cutoff window, frees the seats and
    refunds the payment.
    """

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
        return await self.booking_ledger.cancel_booking(
            booking_reference=booking_reference, user_id=user_id
        )
