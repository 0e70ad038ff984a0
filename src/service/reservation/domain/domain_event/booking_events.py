"""
Booking Domain Events

Emitted for the mailer collaborator once a booking is confirmed or cancelled.
Delivery is fire-and-forget.
"""

from datetime import datetime
from typing import Any

import attrs

from src.service.reservation.domain.entity.booking_entity import Booking


@attrs.define(frozen=True)
class BookingConfirmedEvent:
    booking_reference: str
    user_id: int
    showtime_id: str
    seats: list[str]
    total_amount: int
    occurred_at: datetime

    @classmethod
    def from_booking(cls, *, booking: Booking, now: datetime) -> 'BookingConfirmedEvent':
        return cls(
            booking_reference=booking.booking_reference,
            user_id=booking.user_id,
            showtime_id=booking.showtime_id,
            seats=[str(seat_id) for seat_id in booking.seat_ids],
            total_amount=booking.total_amount,
            occurred_at=now,
        )


@attrs.define(frozen=True)
class BookingCancelledEvent:
    booking_reference: str
    user_id: int
    showtime_id: str
    seats: list[str]
    refund_id: str | None
    occurred_at: datetime

    @classmethod
    def from_booking(cls, *, booking: Booking, now: datetime) -> 'BookingCancelledEvent':
        return cls(
            booking_reference=booking.booking_reference,
            user_id=booking.user_id,
            showtime_id=booking.showtime_id,
            seats=[str(seat_id) for seat_id in booking.seat_ids],
            refund_id=booking.refund_id,
            occurred_at=now,
        )


BookingDomainEvent = BookingConfirmedEvent | BookingCancelledEvent


def to_message(event: BookingDomainEvent) -> dict[str, Any]:
    payload = attrs.asdict(event)
    payload['occurred_at'] = event.occurred_at.isoformat()
    payload['event_type'] = type(event).__name__
    return payload
