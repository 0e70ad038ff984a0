from datetime import datetime, timedelta
from typing import Optional

import attrs

from src.service.reservation.domain.enum import SeatType


@attrs.define
class Showtime:
    id: str
    movie_id: str
    theater_id: str
    starts_at: datetime
    prices: dict[SeatType, int]
    is_active: bool = True
    created_at: Optional[datetime] = None

    def price_for(self, seat_type: SeatType) -> int:
        return self.prices[seat_type]

    def cancellation_closes_at(self, *, cutoff: timedelta) -> datetime:
        return self.starts_at - cutoff

    def has_started(self, *, now: datetime) -> bool:
        return now >= self.starts_at
