import attrs

from src.service.reservation.domain.enum import SeatType


@attrs.define(frozen=True)
class SeatRowSpec:
    """One row of a theater layout: `seat_count` seats numbered from 1."""

    row: str
    seat_count: int
    seat_type: SeatType
