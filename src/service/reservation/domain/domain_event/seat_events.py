"""
Seat state change events

Published by the Hold Manager and Booking Ledger to every viewer of a
showtime. `sequence` is assigned by the fan-out at publish time and is
monotonic per showtime.
"""

from datetime import datetime
from typing import Any, ClassVar, Union

import attrs

from src.service.reservation.domain.enum import SeatState


@attrs.define(frozen=True)
class SeatHeld:
    event_type: ClassVar[str] = 'seat_held'
    new_state: ClassVar[SeatState] = SeatState.HELD

    seat_id: str
    holder_id: int
    expires_at: datetime


@attrs.define(frozen=True)
class SeatReleased:
    event_type: ClassVar[str] = 'seat_released'
    new_state: ClassVar[SeatState] = SeatState.FREE

    seat_id: str


@attrs.define(frozen=True)
class SeatBooked:
    event_type: ClassVar[str] = 'seat_booked'
    new_state: ClassVar[SeatState] = SeatState.BOOKED

    seat_id: str


SeatEvent = Union[SeatHeld, SeatReleased, SeatBooked]


@attrs.define(frozen=True)
class SeatEventEnvelope:
    showtime_id: str
    sequence: int
    event: SeatEvent
    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        payload = attrs.asdict(self.event)
        if isinstance(self.event, SeatHeld):
            payload['expires_at'] = self.event.expires_at.isoformat()
        return {
            'event_type': self.event.event_type,
            'showtime_id': self.showtime_id,
            'sequence': self.sequence,
            'state': self.event.new_state.value,
            'occurred_at': self.occurred_at.isoformat(),
            **payload,
        }
