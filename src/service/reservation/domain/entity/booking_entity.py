from datetime import datetime, timedelta
from typing import Optional

import attrs

from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.service.reservation.domain.enum import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SeatType,
)
from src.service.reservation.domain.reservation_errors import CancellationWindowClosedError
from src.service.reservation.domain.value_object.seat_id import SeatId


@attrs.define(frozen=True)
class BookedSeat:
    seat_id: SeatId
    seat_type: SeatType
    price: int


@attrs.define
class Booking:
    booking_reference: str
    user_id: int
    showtime_id: str
    seats: tuple[BookedSeat, ...]
    total_amount: int
    payment_method: PaymentMethod
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    @Logger.io
    def create_confirmed(
        cls,
        *,
        booking_reference: str,
        user_id: int,
        showtime_id: str,
        seats: list[BookedSeat],
        payment_method: PaymentMethod,
        transaction_id: str,
        now: datetime,
    ) -> 'Booking':
        if not seats:
            raise DomainError('A booking needs at least one seat')
        return cls(
            booking_reference=booking_reference,
            user_id=user_id,
            showtime_id=showtime_id,
            seats=tuple(sorted(seats, key=lambda s: s.seat_id.sort_key)),
            total_amount=sum(seat.price for seat in seats),
            payment_method=payment_method,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            transaction_id=transaction_id,
            paid_at=now,
            created_at=now,
            updated_at=now,
        )

    @property
    def seat_ids(self) -> list[SeatId]:
        return [seat.seat_id for seat in self.seats]

    @property
    def refund_pending(self) -> bool:
        """Cancelled while its payment is still captured."""
        return (
            self.status == BookingStatus.CANCELLED
            and self.payment_status == PaymentStatus.PAID
            and self.transaction_id is not None
        )

    def validate_can_be_cancelled(
        self, *, now: datetime, starts_at: datetime, cutoff: timedelta
    ) -> None:
        """
        Raises:
            DomainError: booking status does not allow cancellation
            CancellationWindowClosedError: inside the cutoff before showtime start
        """
        if self.status == BookingStatus.CANCELLED:
            raise DomainError('Booking is already cancelled')
        if self.status == BookingStatus.COMPLETED:
            raise DomainError('Cannot cancel a completed booking')
        if self.status != BookingStatus.CONFIRMED:
            raise DomainError('Only confirmed bookings can be cancelled')
        if starts_at - now < cutoff:
            hours = cutoff.total_seconds() / 3600
            raise CancellationWindowClosedError(
                f'Cannot cancel booking less than {hours:g} hours before showtime'
            )

    @Logger.io
    def cancel(self, *, now: datetime, refund_id: Optional[str] = None) -> 'Booking':
        return attrs.evolve(
            self,
            status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED if refund_id else self.payment_status,
            refund_id=refund_id,
            refunded_at=now if refund_id else None,
            cancelled_at=now,
            updated_at=now,
        )


    @Logger.io
    def record_refund(self, *, refund_id: str, now: datetime) -> 'Booking':
        if self.status != BookingStatus.CANCELLED:
            raise DomainError('Only cancelled bookings can be refunded')
        return attrs.evolve(
            self,
            payment_status=PaymentStatus.REFUNDED,
            refund_id=refund_id,
            refunded_at=now,
            updated_at=now,
        )
