"""
Booking Event Publisher Implementation

Hands BookingConfirmed / BookingCancelled events to the mailer collaborator.

publish() only enqueues onto a bounded in-memory stream and never waits;
run() is the background worker (started in the app lifespan task group)
that drains the stream to Kafka, or to the log when Kafka is not configured.
A failed send is logged and dropped: the mailer is best-effort.
"""

import anyio
from anyio import ClosedResourceError, WouldBlock, create_memory_object_stream
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.event_publisher import close_producer, publish_message
from src.service.reservation.app.interface.i_booking_event_publisher import (
    IBookingEventPublisher,
)
from src.service.reservation.domain.domain_event.booking_events import (
    BookingDomainEvent,
    to_message,
)


class BookingEventPublisherImpl(IBookingEventPublisher):
    def __init__(self, *, buffer_size: int | None = None, kafka_enabled: bool | None = None) -> None:
        self._send_stream: MemoryObjectSendStream[BookingDomainEvent]
        self._receive_stream: MemoryObjectReceiveStream[BookingDomainEvent]
        self._send_stream, self._receive_stream = create_memory_object_stream[BookingDomainEvent](
            max_buffer_size=buffer_size or settings.BOOKING_EVENT_BUFFER_SIZE
        )
        self._kafka_enabled = settings.KAFKA_ENABLED if kafka_enabled is None else kafka_enabled
        self.dropped = 0

    def publish(self, *, event: BookingDomainEvent) -> None:
        try:
            self._send_stream.send_nowait(event)
        except WouldBlock:
            self.dropped += 1
            Logger.base.warning(
                f'⚠️ [BOOKING-EVENT] Queue full, dropping {type(event).__name__} '
                f'for {event.booking_reference}'
            )
        except ClosedResourceError:
            self.dropped += 1
            Logger.base.warning(
                f'⚠️ [BOOKING-EVENT] Publisher closed, dropping {type(event).__name__} '
                f'for {event.booking_reference}'
            )

    @property
    def pending(self) -> int:
        return self._send_stream.statistics().current_buffer_used

    async def run(self) -> None:
        """Drain queued events until close() is called (or the task is cancelled)."""
        Logger.base.info(
            f'📨 [BOOKING-EVENT] Worker started '
            f'(sink={"kafka:" + settings.BOOKING_EVENT_TOPIC if self._kafka_enabled else "log"})'
        )
        try:
            async with self._receive_stream:
                async for event in self._receive_stream:
                    await self.deliver(event=event)
        finally:
            if self._kafka_enabled:
                with anyio.CancelScope(shield=True):
                    await close_producer()
            Logger.base.info('📨 [BOOKING-EVENT] Worker stopped')

    async def deliver(self, *, event: BookingDomainEvent) -> None:
        message = to_message(event)
        if not self._kafka_enabled:
            Logger.base.info(f'📨 [BOOKING-EVENT] {message["event_type"]}: {message}')
            return
        try:
            await publish_message(
                topic=settings.BOOKING_EVENT_TOPIC,
                key=event.booking_reference,
                payload=message,
            )
        except Exception as e:
            # Mail delivery must not take the worker down
            Logger.base.error(
                f'❌ [BOOKING-EVENT] Failed to publish {message["event_type"]} '
                f'for {event.booking_reference}: {e}'
            )

    async def close(self) -> None:
        """Stop accepting events; run() delivers what is queued and then returns."""
        await self._send_stream.aclose()
