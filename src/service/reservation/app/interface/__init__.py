"""Reservation Service Interfaces"""

from src.service.reservation.app.interface.i_booking_event_publisher import (
    IBookingEventPublisher,
)
from src.service.reservation.app.interface.i_booking_repo import IBookingRepo
from src.service.reservation.app.interface.i_hold_repo import IHoldRepo
from src.service.reservation.app.interface.i_payment_gateway import IPaymentGateway
from src.service.reservation.app.interface.i_seat_event_broadcaster import (
    ISeatEventBroadcaster,
)
from src.service.reservation.app.interface.i_showtime_repo import IShowtimeRepo


__all__ = [
    'IBookingEventPublisher',
    'IBookingRepo',
    'IHoldRepo',
    'IPaymentGateway',
    'ISeatEventBroadcaster',
    'IShowtimeRepo',
]
