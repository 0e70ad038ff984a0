"""
Reservation error taxonomy

Every error a client can recover from is a CustomBaseError so the HTTP layer
maps it to a user-facing response. ConcurrencyConflict is internal: components
retry once and translate it before it reaches a caller.
"""

from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    GoneError,
    PaymentRequiredError,
)


class SeatUnavailableError(ConflictError):
    def __init__(self, seat_ids: list[str]) -> None:
        super().__init__(
            'Some seats are no longer available', extra={'unavailable_seats': seat_ids}
        )
        self.seat_ids = seat_ids


class HoldExpiredError(GoneError):
    def __init__(
        self, message: str = 'Seat hold has expired, please select your seats again'
    ) -> None:
        super().__init__(message)


class CancellationWindowClosedError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 400)


class PaymentError(PaymentRequiredError):
    def __init__(self, message: str = 'Payment was declined') -> None:
        super().__init__(message)


class ConcurrencyConflict(Exception):
    """A seat compare-and-swap failed where the caller expected it to succeed."""

    def __init__(self, seat_ids: list[str]) -> None:
        super().__init__(f'Seat state changed concurrently: {", ".join(seat_ids)}')
        self.seat_ids = seat_ids
