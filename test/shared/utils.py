from datetime import datetime, timedelta
from functools import partial
from typing import Optional

from src.platform.database.db_setting import Database
from src.platform.database.unit_of_work import SqlAlchemyUnitOfWork
from src.platform.state.deadline_queue import DeadlineQueue
from src.platform.state.keyed_lock import KeyedLock
from src.service.reservation.app.command.confirm_booking_use_case import ConfirmBookingUseCase
from src.service.reservation.app.command.create_showtime_use_case import CreateShowtimeUseCase
from src.service.reservation.app.dto.showtime_dto import SeatRowSpec
from src.service.reservation.app.query.get_seat_map_use_case import GetSeatMapUseCase
from src.service.reservation.app.query.list_my_bookings_use_case import ListMyBookingsUseCase
from src.service.reservation.app.service.booking_ledger import BookingLedger
from src.service.reservation.app.service.hold_manager import HoldManager
from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.enum import PaymentMethod, SeatState, SeatType
from src.service.reservation.domain.value_object.seat_id import SeatId
from src.service.reservation.driven_adapter.broadcaster.seat_event_broadcaster_impl import (
    SeatEventBroadcasterImpl,
)
from src.service.reservation.driven_adapter.message_queue.booking_event_publisher_impl import (
    BookingEventPublisherImpl,
)
from src.service.reservation.driven_adapter.payment.mock_payment_gateway_impl import (
    MockPaymentGatewayImpl,
)
from test.util_constant import (
    CANCELLATION_CUTOFF,
    DEFAULT_HOLD_TTL,
    DEFAULT_PRICES,
    VALID_PAYMENT_TOKEN,
)


class FakeClock:
    """Injectable clock; tests move time with advance() or set()."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class ReservationCore:
    """The reservation components wired the same way the DI container wires them."""

    def __init__(self, *, database: Database, clock: FakeClock) -> None:
        self.database = database
        self.clock = clock
        self.uow_factory = partial(SqlAlchemyUnitOfWork, database=database)
        self.keyed_lock = KeyedLock()
        self.expiry_queue = DeadlineQueue()
        self.broadcaster = SeatEventBroadcasterImpl(buffer_size=100, clock=clock)
        self.event_publisher = BookingEventPublisherImpl(buffer_size=100, kafka_enabled=False)
        self.payment_gateway = MockPaymentGatewayImpl(clock=clock)
        self.hold_manager = HoldManager(
            uow_factory=self.uow_factory,
            keyed_lock=self.keyed_lock,
            broadcaster=self.broadcaster,
            expiry_queue=self.expiry_queue,
            clock=clock,
        )
        self.booking_ledger = BookingLedger(
            uow_factory=self.uow_factory,
            keyed_lock=self.keyed_lock,
            broadcaster=self.broadcaster,
            hold_manager=self.hold_manager,
            payment_gateway=self.payment_gateway,
            event_publisher=self.event_publisher,
            cancellation_cutoff=CANCELLATION_CUTOFF,
            clock=clock,
        )
        self.create_showtime_use_case = CreateShowtimeUseCase(
            uow_factory=self.uow_factory, clock=clock
        )
        self.get_seat_map_use_case = GetSeatMapUseCase(
            uow_factory=self.uow_factory,
            keyed_lock=self.keyed_lock,
            broadcaster=self.broadcaster,
        )
        self.confirm_booking_use_case = ConfirmBookingUseCase(
            hold_manager=self.hold_manager,
            booking_ledger=self.booking_ledger,
            payment_gateway=self.payment_gateway,
            clock=clock,
        )
        self.list_my_bookings_use_case = ListMyBookingsUseCase(uow_factory=self.uow_factory)

    async def create_showtime(
        self,
        *,
        starts_in: timedelta = timedelta(days=1),
        rows: Optional[list[SeatRowSpec]] = None,
    ) -> str:
        showtime, _ = await self.create_showtime_use_case.execute(
            movie_id='mv_test',
            theater_id='th_test',
            starts_at=self.clock() + starts_in,
            prices=dict(DEFAULT_PRICES),
            layout=rows
            or [
                SeatRowSpec(row='A', seat_count=10, seat_type=SeatType.STANDARD),
                SeatRowSpec(row='B', seat_count=5, seat_type=SeatType.VIP),
            ],
        )
        return showtime.id

    async def hold(
        self,
        *,
        showtime_id: str,
        user_id: int,
        seats: list[str],
        ttl: timedelta = DEFAULT_HOLD_TTL,
    ) -> Hold:
        return await self.hold_manager.create_hold(
            showtime_id=showtime_id,
            user_id=user_id,
            seat_ids=[SeatId.from_str(seat) for seat in seats],
            ttl=ttl,
        )

    async def confirm(
        self, *, hold: Hold, user_id: Optional[int] = None, token: str = VALID_PAYMENT_TOKEN
    ) -> Booking:
        return await self.confirm_booking_use_case.execute(
            hold_id=hold.id,
            user_id=hold.user_id if user_id is None else user_id,
            payment_method=PaymentMethod.CARD,
            payment_token=token,
        )

    async def seat_states(self, *, showtime_id: str) -> dict[str, SeatState]:
        snapshot = await self.get_seat_map_use_case.get_snapshot(showtime_id=showtime_id)
        return {str(seat.seat_id): seat.state for seat in snapshot.seat_map.ordered_seats()}


def build_reservation_core(*, database: Database, clock: FakeClock) -> ReservationCore:
    return ReservationCore(database=database, clock=clock)
