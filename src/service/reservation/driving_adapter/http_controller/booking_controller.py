import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace

from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.command.cancel_booking_use_case import CancelBookingUseCase
from src.service.reservation.app.command.confirm_booking_use_case import ConfirmBookingUseCase
from src.service.reservation.app.query.get_booking_use_case import GetBookingUseCase
from src.service.reservation.app.query.list_my_bookings_use_case import ListMyBookingsUseCase
from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.enum import BookingStatus
from src.service.reservation.driving_adapter.http_controller.auth.current_user import (
    get_current_user_id,
)
from src.service.reservation.driving_adapter.http_controller.schema.booking_schema import (
    BookedSeatResponse,
    BookingConfirmRequest,
    BookingListResponse,
    BookingResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        booking_reference=booking.booking_reference,
        user_id=booking.user_id,
        showtime_id=booking.showtime_id,
        seats=[
            BookedSeatResponse(
                seat_id=str(seat.seat_id), seat_type=seat.seat_type, price=seat.price
            )
            for seat in booking.seats
        ],
        total_amount=booking.total_amount,
        status=booking.status,
        payment_status=booking.payment_status,
        payment_method=booking.payment_method,
        transaction_id=booking.transaction_id,
        paid_at=booking.paid_at,
        refund_id=booking.refund_id,
        refunded_at=booking.refunded_at,
        cancelled_at=booking.cancelled_at,
        created_at=booking.created_at,
    )


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def confirm_booking(
    request: BookingConfirmRequest,
    current_user_id: int = Depends(get_current_user_id),
    use_case: ConfirmBookingUseCase = Depends(ConfirmBookingUseCase.depends),
) -> BookingResponse:
    with tracer.start_as_current_span('controller.confirm_booking') as span:
        span.set_attribute('hold_id', request.hold_id)
        span.set_attribute('user_id', current_user_id)

        booking = await use_case.execute(
            hold_id=request.hold_id,
            user_id=current_user_id,
            payment_method=request.payment_method,
            payment_token=request.payment_token,
        )

        span.set_attribute('booking.reference', booking.booking_reference)
        return _booking_response(booking)


@router.get('/my_booking')
@Logger.io
async def list_my_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias='status'),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user_id: int = Depends(get_current_user_id),
    use_case: ListMyBookingsUseCase = Depends(ListMyBookingsUseCase.depends),
) -> BookingListResponse:
    bookings, total = await use_case.execute(
        user_id=current_user_id, status=booking_status, page=page, limit=limit
    )
    return BookingListResponse(
        bookings=[_booking_response(booking) for booking in bookings],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


@router.get('/{booking_reference}')
@Logger.io
async def get_booking(
    booking_reference: str,
    current_user_id: int = Depends(get_current_user_id),
    use_case: GetBookingUseCase = Depends(GetBookingUseCase.depends),
) -> BookingResponse:
    booking = await use_case.execute(booking_reference=booking_reference, user_id=current_user_id)
    return _booking_response(booking)


@router.post('/{booking_reference}/cancel', status_code=status.HTTP_200_OK)
@Logger.io
async def cancel_booking(
    booking_reference: str,
    current_user_id: int = Depends(get_current_user_id),
    use_case: CancelBookingUseCase = Depends(CancelBookingUseCase.depends),
) -> BookingResponse:
    booking = await use_case.execute(
        booking_reference=booking_reference, user_id=current_user_id
    )
    return _booking_response(booking)
