from src.service.reservation.driven_adapter.broadcaster.seat_event_broadcaster_impl import (
    SeatEventBroadcasterImpl,
)

__all__ = ['SeatEventBroadcasterImpl']
