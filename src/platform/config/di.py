"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi-sqlalchemy.html
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.db_setting import Database
from src.platform.database.unit_of_work import SqlAlchemyUnitOfWork
from src.platform.state.deadline_queue import DeadlineQueue
from src.platform.state.keyed_lock import KeyedLock
from src.service.reservation.app.service.booking_ledger import BookingLedger
from src.service.reservation.app.service.hold_manager import HoldManager
from src.service.reservation.driven_adapter.broadcaster.seat_event_broadcaster_impl import (
    SeatEventBroadcasterImpl,
)
from src.service.reservation.driven_adapter.message_queue.booking_event_publisher_impl import (
    BookingEventPublisherImpl,
)
from src.service.reservation.driven_adapter.payment.mock_payment_gateway_impl import (
    MockPaymentGatewayImpl,
)
from src.service.reservation.driving_adapter.http_controller.auth.jwt_auth import JwtAuth
from src.service.reservation.driving_adapter.scheduler.hold_expiry_scheduler import (
    HoldExpiryScheduler,
)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Database (engine is created lazily on first session)
    database = providers.Singleton(Database)

    # One UoW per operation; components receive the factory
    unit_of_work = providers.Factory(SqlAlchemyUnitOfWork, database=database)

    # Per-showtime serialization and hold deadlines
    keyed_lock = providers.Singleton(KeyedLock)
    expiry_queue = providers.Singleton(DeadlineQueue)

    # Seat event fan-out (in-memory, per process)
    seat_event_broadcaster = providers.Singleton(
        SeatEventBroadcasterImpl,
        buffer_size=config_service.provided.SUBSCRIBER_BUFFER_SIZE,
    )

    # Outbound collaborators
    booking_event_publisher = providers.Singleton(
        BookingEventPublisherImpl,
        buffer_size=config_service.provided.BOOKING_EVENT_BUFFER_SIZE,
    )
    payment_gateway = providers.Singleton(MockPaymentGatewayImpl)

    # Auth service
    jwt_auth = providers.Singleton(JwtAuth)

    # Reservation core components
    hold_manager = providers.Singleton(
        HoldManager,
        uow_factory=unit_of_work.provider,
        keyed_lock=keyed_lock,
        broadcaster=seat_event_broadcaster,
        expiry_queue=expiry_queue,
    )
    booking_ledger = providers.Singleton(
        BookingLedger,
        uow_factory=unit_of_work.provider,
        keyed_lock=keyed_lock,
        broadcaster=seat_event_broadcaster,
        hold_manager=hold_manager,
        payment_gateway=payment_gateway,
        event_publisher=booking_event_publisher,
    )

    # Background hold expiry
    hold_expiry_scheduler = providers.Singleton(
        HoldExpiryScheduler,
        hold_manager=hold_manager,
        expiry_queue=expiry_queue,
        sweep_interval=config_service.provided.HOLD_SWEEP_INTERVAL_SECONDS,
    )


container = Container()


def cleanup() -> None:
    container.reset_singletons()
