from datetime import datetime, timedelta

import attrs
import uuid_utils as uuid

from src.service.reservation.domain.value_object.seat_id import SeatId


@attrs.define(frozen=True)
class Hold:
    """A time-boxed claim on a set of seats of one showtime by one user."""

    id: str
    user_id: int
    showtime_id: str
    seats: tuple[SeatId, ...]
    total_amount: int
    created_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        *,
        user_id: int,
        showtime_id: str,
        seats: list[SeatId],
        total_amount: int,
        now: datetime,
        ttl: timedelta,
    ) -> 'Hold':
        return cls(
            id=str(uuid.uuid7()),
            user_id=user_id,
            showtime_id=showtime_id,
            seats=tuple(sorted(seats)),
            total_amount=total_amount,
            created_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, *, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def seat_labels(self) -> list[str]:
        return [str(seat) for seat in self.seats]
