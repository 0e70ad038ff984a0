from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class HoldCreateRequest(BaseModel):
    showtime_id: str
    seat_ids: List[str] = Field(min_length=1)
    ttl_seconds: Optional[int] = None

    model_config = {
        'json_schema_extra': {
            'example': {
                'showtime_id': '01936d8f-5e73-7c4e-a9c5-123456789abc',
                'seat_ids': ['A1', 'A2'],
            }
        },
    }


class HoldResponse(BaseModel):
    hold_id: str
    showtime_id: str
    seats: List[str]
    total_amount: int
    created_at: datetime
    expires_at: datetime


class HoldReleaseResponse(BaseModel):
    hold_id: str
    released: bool
