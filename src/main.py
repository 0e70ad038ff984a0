"""
Production FastAPI Application

Reservation API plus its background tasks: hold expiry scheduler and the
booking event worker.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import cleanup, container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig


BOOKING_EVENT_DRAIN_TIMEOUT_SECONDS = 10


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Reservation Service] Starting up...')

    # Setup OpenTelemetry tracing (OTLP export when configured)
    tracing = TracingConfig(service_name='reservation-service')
    tracing.setup()
    Logger.base.info('📊 [Reservation Service] OpenTelemetry tracing configured')

    # Wire dependency injection for all modules
    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Reservation Service] Dependency injection wired')

    # Initialize database
    database = container.database()
    tracing.instrument_sqlalchemy(engine=database.engine)
    if settings.DB_CREATE_TABLES_ON_STARTUP:
        await database.create_tables()
    Logger.base.info('🗄️  [Reservation Service] Database engine ready + instrumented')

    # Re-arm hold deadlines that survived the restart
    hold_manager = container.hold_manager()
    await hold_manager.rearm_from_storage()

    booking_event_publisher = container.booking_event_publisher()
    scheduler = container.hold_expiry_scheduler()

    # Create task group for background tasks
    async with anyio.create_task_group() as tg:
        tg.start_soon(booking_event_publisher.run)

        async with anyio.create_task_group() as scheduler_tg:
            scheduler_tg.start_soon(scheduler.run)
            Logger.base.info('✅ [Reservation Service] Ready to serve requests')

            yield

            Logger.base.info('🛑 [Reservation Service] Shutting down...')
            scheduler_tg.cancel_scope.cancel()

        # Let the worker flush queued booking events, but not forever
        await booking_event_publisher.close()
        tg.cancel_scope.deadline = anyio.current_time() + BOOKING_EVENT_DRAIN_TIMEOUT_SECONDS
    Logger.base.info('📤 [Reservation Service] Booking event publisher closed')

    await database.dispose()

    # Shutdown tracing (flush remaining spans)
    tracing.shutdown()
    Logger.base.info('📊 [Reservation Service] Tracing shutdown complete')

    # Unwire DI and drop singletons
    container.unwire()
    cleanup()

    Logger.base.info('👋 [Reservation Service] Shutdown complete')


# Create FastAPI app using shared factory
app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
