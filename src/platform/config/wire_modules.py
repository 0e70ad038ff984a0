"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.reservation.app.command import (
    cancel_booking_use_case,
    confirm_booking_use_case,
    create_hold_use_case,
    create_showtime_use_case,
    release_hold_use_case,
)
from src.service.reservation.app.query import (
    get_booking_use_case,
    get_seat_map_use_case,
    list_my_bookings_use_case,
)
from src.service.reservation.driving_adapter.http_controller.auth import current_user


WIRE_MODULES: list[ModuleType] = [
    create_showtime_use_case,
    create_hold_use_case,
    release_hold_use_case,
    confirm_booking_use_case,
    cancel_booking_use_case,
    get_seat_map_use_case,
    list_my_bookings_use_case,
    get_booking_use_case,
    current_user,
]
