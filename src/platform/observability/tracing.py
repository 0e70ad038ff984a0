"""
OpenTelemetry tracing for the reservation service.

Provides:
- Auto-instrumentation for FastAPI and the SQLAlchemy engine
- Common span attributes for showtimes, holds and bookings
- Trace context injection into booking event headers
- OTLP export when OTEL_EXPORTER_OTLP_ENDPOINT is set
"""

from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.propagate import inject
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON

from src.platform.config.core_setting import settings


class TracingConfig:
    """
    Usage:
        # Once per process, inside the app lifespan
        tracing = TracingConfig(service_name='reservation-service')
        tracing.setup()
        tracing.instrument_sqlalchemy(engine=database.engine)
        ...
        tracing.shutdown()
    """

    def __init__(
        self,
        *,
        service_name: str,
        otlp_endpoint: Optional[str] = None,
        enable_console: Optional[bool] = None,
    ) -> None:
        self.service_name = service_name
        self.otlp_endpoint = otlp_endpoint or settings.OTEL_EXPORTER_OTLP_ENDPOINT
        self.enable_console = (
            settings.OTEL_CONSOLE_EXPORT if enable_console is None else enable_console
        )

        self._provider: TracerProvider | None = None
        self._sqlalchemy_instrumented = False

    def setup(self) -> None:
        """
        Install a global tracer provider.

        Sampling stays ALWAYS_ON at the SDK; volume control belongs to
        tail sampling in the collector, which can still keep every error.
        With neither exporter configured spans are created and dropped.
        """
        resource = Resource(
            attributes={
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: settings.VERSION,
                'deployment.environment': settings.DEPLOY_ENV,
            }
        )
        self._provider = TracerProvider(resource=resource, sampler=ALWAYS_ON)

        if self.otlp_endpoint:
            self._provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=self.otlp_endpoint))
            )
        if self.enable_console:
            self._provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(self._provider)

    def instrument_fastapi(self, *, app: Any, excluded_urls: str = 'health,metrics') -> None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded_urls)

    def instrument_sqlalchemy(self, *, engine: Any) -> None:
        # AsyncEngine wraps a sync engine, which is what the instrumentor hooks
        SQLAlchemyInstrumentor().instrument(engine=getattr(engine, 'sync_engine', engine))
        self._sqlalchemy_instrumented = True

    def shutdown(self) -> None:
        if self._sqlalchemy_instrumented:
            SQLAlchemyInstrumentor().uninstrument()
            self._sqlalchemy_instrumented = False
        if self._provider:
            self._provider.shutdown()


def reservation_span_attributes(
    *,
    showtime_id: Optional[str] = None,
    hold_id: Optional[str] = None,
    booking_reference: Optional[str] = None,
    user_id: Optional[int] = None,
    seat_count: Optional[int] = None,
) -> dict[str, str | int]:
    """
    Span attributes under one naming scheme so a hold can be followed from
    creation through confirmation or expiry. None values are left out.
    """
    attributes: dict[str, str | int | None] = {
        'showtime.id': showtime_id,
        'hold.id': hold_id,
        'booking.reference': booking_reference,
        'user.id': user_id,
        'seat.quantity': seat_count,
    }
    return {key: value for key, value in attributes.items() if value is not None}


def inject_trace_context(*, headers: dict[str, str] | None = None) -> dict[str, str]:
    """
    Add the current trace context (W3C traceparent) to outgoing message headers,
    so consumers of booking events can continue the request's trace.
    """
    headers = headers if headers is not None else {}
    inject(headers)
    return headers
