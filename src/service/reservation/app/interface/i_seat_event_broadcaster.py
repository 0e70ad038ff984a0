"""
Seat Event Broadcaster Interface

Fan-out of seat state changes to every subscriber of a showtime.
"""

from abc import ABC, abstractmethod

from anyio.streams.memory import MemoryObjectReceiveStream

from src.service.reservation.domain.domain_event.seat_events import (
    SeatEvent,
    SeatEventEnvelope,
)


class ISeatEventBroadcaster(ABC):
    @abstractmethod
    def subscribe(
        self, *, showtime_id: str, subscriber_id: str
    ) -> MemoryObjectReceiveStream[SeatEventEnvelope]:
        """
        Register a subscriber and return the stream it reads from.

        Subscribing twice with the same id replaces the earlier stream.
        """
        pass

    @abstractmethod
    async def unsubscribe(self, *, showtime_id: str, subscriber_id: str) -> None:
        """Safe to call for unknown subscribers."""
        pass

    @abstractmethod
    def publish(self, *, showtime_id: str, event: SeatEvent) -> SeatEventEnvelope:
        """
        Stamp the event with the next showtime sequence number and deliver it.

        Never blocks: a subscriber whose buffer is full misses the event and
        recovers by refetching the seat map.
        """
        pass

    @abstractmethod
    def current_sequence(self, *, showtime_id: str) -> int:
        pass
