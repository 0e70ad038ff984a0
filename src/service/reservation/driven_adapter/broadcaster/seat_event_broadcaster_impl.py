"""
In-memory Seat Event Broadcaster Implementation

Distributes seat state changes from the Hold Manager and Booking Ledger to the
SSE endpoints of the same process.
"""

from typing import Dict

from anyio import BrokenResourceError, ClosedResourceError, WouldBlock, create_memory_object_stream
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from src.platform.clock import Clock, utc_now
from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.reservation_metrics import metrics
from src.service.reservation.app.interface.i_seat_event_broadcaster import ISeatEventBroadcaster
from src.service.reservation.domain.domain_event.seat_events import (
    SeatEvent,
    SeatEventEnvelope,
)


class SeatEventBroadcasterImpl(ISeatEventBroadcaster):
    """
    In-memory pub/sub for seat events

    Architecture:
    - Hold Manager / Booking Ledger → publish() → SSE Endpoint
    - Each showtime_id maps subscriber_id to a (send_stream, receive_stream) pair
    - publish() is only called under the showtime lock, so sequence numbers
      follow the order transitions were applied in

    Memory Management:
    - Stream max buffer: SUBSCRIBER_BUFFER_SIZE events
    - Drop policy: drop if stream full (send_nowait raises WouldBlock); the
      client detects the sequence gap and refetches the seat map
    - Cleanup: remove empty showtimes on unsubscribe and close streams
    """

    def __init__(self, *, buffer_size: int | None = None, clock: Clock = utc_now) -> None:
        self._buffer_size = buffer_size or settings.SUBSCRIBER_BUFFER_SIZE
        self._clock = clock
        # showtime_id → subscriber_id → (send_stream, receive_stream)
        self._subscribers: Dict[
            str,
            Dict[
                str,
                tuple[
                    MemoryObjectSendStream[SeatEventEnvelope],
                    MemoryObjectReceiveStream[SeatEventEnvelope],
                ],
            ],
        ] = {}
        self._sequences: Dict[str, int] = {}

    def subscribe(
        self, *, showtime_id: str, subscriber_id: str
    ) -> MemoryObjectReceiveStream[SeatEventEnvelope]:
        send_stream, receive_stream = create_memory_object_stream[SeatEventEnvelope](
            max_buffer_size=self._buffer_size
        )
        subscribers = self._subscribers.setdefault(showtime_id, {})

        if (previous := subscribers.pop(subscriber_id, None)) is not None:
            previous[0].close()
        else:
            metrics.stream_subscribers.inc()
        subscribers[subscriber_id] = (send_stream, receive_stream)

        Logger.base.debug(
            f'📡 [BROADCASTER] {subscriber_id} subscribed to showtime {showtime_id} '
            f'(total subscribers: {len(subscribers)})'
        )
        return receive_stream

    async def unsubscribe(self, *, showtime_id: str, subscriber_id: str) -> None:
        subscribers = self._subscribers.get(showtime_id)
        if not subscribers or subscriber_id not in subscribers:
            return

        send_stream, receive_stream = subscribers.pop(subscriber_id)
        await send_stream.aclose()
        await receive_stream.aclose()
        metrics.stream_subscribers.dec()
        Logger.base.debug(
            f'📡 [BROADCASTER] {subscriber_id} unsubscribed from showtime {showtime_id} '
            f'(remaining: {len(subscribers)})'
        )

        if not subscribers:
            del self._subscribers[showtime_id]

    def publish(self, *, showtime_id: str, event: SeatEvent) -> SeatEventEnvelope:
        sequence = self._sequences.get(showtime_id, 0) + 1
        self._sequences[showtime_id] = sequence
        envelope = SeatEventEnvelope(
            showtime_id=showtime_id,
            sequence=sequence,
            event=event,
            occurred_at=self._clock(),
        )

        subscribers = self._subscribers.get(showtime_id)
        if not subscribers:
            return envelope

        delivered = 0
        dropped = 0
        for subscriber_id, (send_stream, _) in list(subscribers.items()):
            try:
                send_stream.send_nowait(envelope)
                delivered += 1
            except WouldBlock:
                dropped += 1
                Logger.base.warning(
                    f'⚠️ [BROADCASTER] Stream full for {subscriber_id} on showtime {showtime_id}, '
                    f'dropping {event.event_type} seq={sequence}'
                )
            except (BrokenResourceError, ClosedResourceError):
                # Reader went away without unsubscribing
                subscribers.pop(subscriber_id, None)
                send_stream.close()
                metrics.stream_subscribers.dec()
                dropped += 1

        if not subscribers:
            del self._subscribers[showtime_id]

        metrics.record_fanout(delivered=delivered, dropped=dropped)
        Logger.base.debug(
            f'📡 [BROADCASTER] {event.event_type} {event.seat_id} seq={sequence} on showtime '
            f'{showtime_id}: delivered={delivered}, dropped={dropped}'
        )
        return envelope

    def current_sequence(self, *, showtime_id: str) -> int:
        return self._sequences.get(showtime_id, 0)

    def subscriber_count(self, *, showtime_id: str) -> int:
        return len(self._subscribers.get(showtime_id, {}))
