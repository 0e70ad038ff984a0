from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.service.reservation.domain.enum import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SeatType,
)


class BookingConfirmRequest(BaseModel):
    hold_id: str
    payment_method: PaymentMethod = PaymentMethod.CARD
    payment_token: str = Field(min_length=1)

    model_config = {
        'json_schema_extra': {
            'example': {
                'hold_id': '01936d8f-5e73-7c4e-a9c5-123456789abc',
                'payment_method': 'card',
                'payment_token': 'tok_visa_4242',
            }
        },
    }


class BookedSeatResponse(BaseModel):
    seat_id: str
    seat_type: SeatType
    price: int


class BookingResponse(BaseModel):
    booking_reference: str
    user_id: int
    showtime_id: str
    seats: List[BookedSeatResponse]
    total_amount: int
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int
    page: int
    limit: int
    pages: int
