"""
Domain Event Publisher

Event publishing using confluent-kafka's experimental AsyncIO Producer.
Payloads are JSON (orjson); the current trace context travels in the headers.

Features:
- Global async producer instance for connection reuse
- Idempotent producer with acks=all for reliability
- Batching with linger.ms for throughput
- True async - doesn't block event loop
"""

from typing import Any, Literal

from confluent_kafka.experimental.aio import AIOProducer
from opentelemetry import trace
import orjson

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import inject_trace_context


# Global async producer instance
_global_producer: AIOProducer | None = None


async def _get_global_producer() -> AIOProducer:
    """Get global async producer instance - avoid creating new producer on every publish"""
    global _global_producer
    if _global_producer is None:
        _global_producer = AIOProducer(settings.KAFKA_PRODUCER_CONFIG)
    return _global_producer


async def publish_message(
    *,
    topic: str,
    key: str,
    payload: dict[str, Any],
) -> Literal[True]:
    """
    Publish a JSON message to a Kafka topic (async, non-blocking).

    Messages with the same key (e.g. a booking reference) land on the same
    partition, so per-key order is kept.
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span(
        'kafka.publish',
        attributes={
            'messaging.system': 'kafka',
            'messaging.destination': topic,
            'messaging.destination_kind': 'topic',
            'event.type': str(payload.get('event_type', '')),
        },
    ):
        trace_headers = inject_trace_context()

        producer = await _get_global_producer()
        # produce() resolves once the message is queued; delivery is not awaited
        await producer.produce(
            topic=topic,
            key=key.encode(),
            value=orjson.dumps(payload),
            headers=[(name, value.encode()) for name, value in trace_headers.items()],
        )

        Logger.base.info(f'Published {payload.get("event_type")} to {topic} (key={key})')

        return True


async def close_producer() -> None:
    global _global_producer
    if _global_producer is not None:
        await _global_producer.flush()
        await _global_producer.close()
        _global_producer = None
        Logger.base.info('Closed async producer')
