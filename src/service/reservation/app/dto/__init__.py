"""Reservation Application DTOs"""

from src.service.reservation.app.dto.payment_dto import PaymentConfirmation, RefundConfirmation
from src.service.reservation.app.dto.seat_map_dto import SeatMapSnapshot, SeatMapSubscription
from src.service.reservation.app.dto.showtime_dto import SeatRowSpec


__all__ = [
    'PaymentConfirmation',
    'RefundConfirmation',
    'SeatMapSnapshot',
    'SeatMapSubscription',
    'SeatRowSpec',
]
