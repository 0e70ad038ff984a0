from datetime import datetime
from typing import Dict, List

from pydantic import AwareDatetime, BaseModel, Field

from src.service.reservation.domain.enum import SeatState, SeatType


class SeatRowRequest(BaseModel):
    row: str = Field(pattern=r'^[A-Za-z]{1,2}$')
    seat_count: int = Field(gt=0, le=999)
    seat_type: SeatType = SeatType.STANDARD


class ShowtimeCreateRequest(BaseModel):
    movie_id: str = Field(min_length=1, max_length=64)
    theater_id: str = Field(min_length=1, max_length=64)
    starts_at: AwareDatetime
    prices: Dict[SeatType, int]
    layout: List[SeatRowRequest] = Field(min_length=1)
    is_active: bool = True

    model_config = {
        'json_schema_extra': {
            'example': {
                'movie_id': 'mv_dune_2',
                'theater_id': 'th_hall_1',
                'starts_at': '2026-12-24T19:30:00+00:00',
                'prices': {'standard': 250, 'premium': 350, 'vip': 500},
                'layout': [
                    {'row': 'A', 'seat_count': 10, 'seat_type': 'standard'},
                    {'row': 'B', 'seat_count': 10, 'seat_type': 'premium'},
                    {'row': 'C', 'seat_count': 6, 'seat_type': 'vip'},
                ],
            }
        },
    }


class ShowtimeResponse(BaseModel):
    id: str
    movie_id: str
    theater_id: str
    starts_at: datetime
    prices: Dict[SeatType, int]
    is_active: bool
    total_seats: int


class SeatResponse(BaseModel):
    seat_id: str
    row: str
    number: int
    seat_type: SeatType
    price: int
    state: SeatState


class SeatMapResponse(BaseModel):
    showtime_id: str
    starts_at: datetime
    sequence: int  # last fan-out sequence reflected in `seats`
    available: int
    held: int
    booked: int
    seats: List[SeatResponse]
