from src.service.reservation.domain.enum.booking_status import BookingStatus, PaymentStatus
from src.service.reservation.domain.enum.seat_state import SeatState, TransitionOutcome
from src.service.reservation.domain.enum.seat_type import PaymentMethod, SeatType
from src.service.reservation.domain.enum.user_role import UserRole


__all__ = [
    'BookingStatus',
    'PaymentMethod',
    'PaymentStatus',
    'SeatState',
    'SeatType',
    'TransitionOutcome',
    'UserRole',
]
