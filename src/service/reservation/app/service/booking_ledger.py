"""
Booking Ledger

The only component that moves seats Held -> Booked (confirmation) and
Booked -> Free (cancellation). Bookings are append-only once confirmed:
only status and payment metadata change afterwards.
"""

from datetime import datetime, timedelta
import random
import string
from typing import Optional

from opentelemetry import trace

from src.platform.clock import Clock, utc_now
from src.platform.config.core_setting import settings
from src.platform.database.unit_of_work import AbstractUnitOfWork, UnitOfWorkFactory
from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.reservation_metrics import metrics
from src.platform.observability.tracing import reservation_span_attributes
from src.platform.state.keyed_lock import KeyedLock
from src.service.reservation.app.dto.payment_dto import PaymentConfirmation
from src.service.reservation.app.interface.i_booking_event_publisher import (
    IBookingEventPublisher,
)
from src.service.reservation.app.interface.i_payment_gateway import IPaymentGateway
from src.service.reservation.app.interface.i_seat_event_broadcaster import ISeatEventBroadcaster
from src.service.reservation.app.service.hold_manager import HoldManager
from src.service.reservation.domain.domain_event.booking_events import (
    BookingCancelledEvent,
    BookingConfirmedEvent,
)
from src.service.reservation.domain.domain_event.seat_events import SeatBooked, SeatReleased
from src.service.reservation.domain.entity.booking_entity import BookedSeat, Booking
from src.service.reservation.domain.enum import PaymentMethod, SeatState, TransitionOutcome
from src.service.reservation.domain.reservation_errors import (
    CancellationWindowClosedError,
    ConcurrencyConflict,
    HoldExpiredError,
)


_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
_REFERENCE_ATTEMPTS = 5


class BookingLedger:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        keyed_lock: KeyedLock,
        broadcaster: ISeatEventBroadcaster,
        hold_manager: HoldManager,
        payment_gateway: IPaymentGateway,
        event_publisher: IBookingEventPublisher,
        cancellation_cutoff: Optional[timedelta] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.uow_factory = uow_factory
        self.keyed_lock = keyed_lock
        self.broadcaster = broadcaster
        self.hold_manager = hold_manager
        self.payment_gateway = payment_gateway
        self.event_publisher = event_publisher
        self.cancellation_cutoff = cancellation_cutoff or timedelta(
            hours=settings.CANCELLATION_CUTOFF_HOURS
        )
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)

    # ========== Confirm ==========

    @Logger.io
    async def confirm_booking(
        self,
        *,
        hold_id: str,
        payment: PaymentConfirmation,
        payment_method: PaymentMethod,
    ) -> Booking:
        """
        Convert a live hold into a Confirmed/Paid booking.

        The expiry timer is disarmed before any state is touched. A CAS
        failure reloads the seat map and retries once; if the hold is then
        gone, overdue or no longer owns its seats, HoldExpiredError is raised
        and no booking exists.
        """
        with self.tracer.start_as_current_span(
            'booking_ledger.confirm_booking',
            attributes=reservation_span_attributes(hold_id=hold_id),
        ):
            self.hold_manager.disarm(hold_id=hold_id)
            try:
                booking = await self._confirm_with_retry(
                    hold_id=hold_id, payment=payment, payment_method=payment_method
                )
            except Exception as e:
                if isinstance(e, HoldExpiredError):
                    metrics.record_booking_confirmation(result='hold_expired')
                # Whatever is left of the hold goes back under expiry
                await self.hold_manager.restore_expiry(hold_id=hold_id)
                raise

        metrics.record_booking_confirmation(result='success')
        self.event_publisher.publish(
            event=BookingConfirmedEvent.from_booking(booking=booking, now=self.clock())
        )
        Logger.base.info(
            f'✅ [BOOKING] {booking.booking_reference} confirmed from hold {hold_id} '
            f'seats={[str(s) for s in booking.seat_ids]} total={booking.total_amount}'
        )
        return booking

    async def _confirm_with_retry(
        self, *, hold_id: str, payment: PaymentConfirmation, payment_method: PaymentMethod
    ) -> Booking:
        for attempt in (1, 2):
            try:
                return await self._confirm_once(
                    hold_id=hold_id, payment=payment, payment_method=payment_method
                )
            except ConcurrencyConflict as e:
                Logger.base.warning(f'🔁 [BOOKING] Confirm attempt {attempt} for {hold_id}: {e}')
        raise HoldExpiredError()

    async def _confirm_once(
        self, *, hold_id: str, payment: PaymentConfirmation, payment_method: PaymentMethod
    ) -> Booking:
        hold = await self.hold_manager.get_hold(hold_id=hold_id)
        if hold is None:
            raise HoldExpiredError()

        async with self.keyed_lock.hold(key=hold.showtime_id):
            async with self.uow_factory() as uow:
                hold = await uow.hold_repo.get(hold_id=hold_id)
                now = self.clock()
                if hold is None or hold.is_expired(now=now):
                    raise HoldExpiredError()
                if payment.amount != hold.total_amount:
                    raise DomainError('Payment amount does not match the held seats')

                seat_map = await uow.showtime_repo.get_seat_map(showtime_id=hold.showtime_id)
                if seat_map is None:
                    raise NotFoundError('Showtime not found')
                booking_reference = await self._generate_reference(uow=uow)

                conflicts = [
                    str(seat_id)
                    for seat_id in hold.seats
                    if seat_map.apply_transition(
                        seat_id,
                        expected_state=SeatState.HELD,
                        new_state=SeatState.BOOKED,
                        owner_id=booking_reference,
                        expected_owner_id=hold.id,
                    )
                    == TransitionOutcome.CONFLICT
                ]
                if conflicts:
                    raise ConcurrencyConflict(conflicts)

                booking = Booking.create_confirmed(
                    booking_reference=booking_reference,
                    user_id=hold.user_id,
                    showtime_id=hold.showtime_id,
                    seats=[
                        BookedSeat(seat_id=seat.seat_id, seat_type=seat.seat_type, price=seat.price)
                        for seat in (seat_map.get_seat(seat_id) for seat_id in hold.seats)
                    ],
                    payment_method=payment_method,
                    transaction_id=payment.transaction_id,
                    now=now,
                )
                await uow.showtime_repo.save_seats(
                    showtime_id=hold.showtime_id, changes=seat_map.pending_changes()
                )
                if not await uow.hold_repo.delete(hold_id=hold.id):
                    raise ConcurrencyConflict([str(seat_id) for seat_id in hold.seats])
                booking = await uow.booking_repo.add(booking=booking)
                await uow.commit()

            for seat_id in booking.seat_ids:
                self.broadcaster.publish(
                    showtime_id=booking.showtime_id, event=SeatBooked(seat_id=str(seat_id))
                )
        return booking

    @staticmethod
    async def _generate_reference(*, uow: AbstractUnitOfWork) -> str:
        for _ in range(_REFERENCE_ATTEMPTS):
            reference = ''.join(
                random.choices(_REFERENCE_ALPHABET, k=settings.BOOKING_REFERENCE_LENGTH)
            )
            if not await uow.booking_repo.exists(booking_reference=reference):
                return reference
        raise RuntimeError('Could not generate a unique booking reference')

    # ========== Cancel ==========

    @Logger.io
    async def cancel_booking(
        self,
        *,
        booking_reference: str,
        now: Optional[datetime] = None,
        user_id: Optional[int] = None,
    ) -> Booking:
        """
        Cancel a confirmed booking outside the cutoff window.

        Seats go Booked -> Free and the booking becomes Cancelled in one
        transaction; the payment is refunded once that has committed, then
        the booking is marked Refunded. A booking whose refund failed stays
        Cancelled/Paid and cancelling it again retries the refund. With
        user_id, only the booking owner may cancel.

        Raises:
            CancellationWindowClosedError: less than the cutoff before showtime start
            ConflictError: the seats kept changing under a concurrent writer
        """
        booking = await self.get_booking(booking_reference=booking_reference)
        if booking is None:
            raise NotFoundError('Booking not found')
        if user_id is not None and booking.user_id != user_id:
            raise ForbiddenError('Only the booking owner can cancel this booking')
        booking_reference = booking.booking_reference

        with self.tracer.start_as_current_span(
            'booking_ledger.cancel_booking',
            attributes=reservation_span_attributes(booking_reference=booking_reference),
        ):
            try:
                async with self.keyed_lock.hold(key=booking.showtime_id):
                    if booking.refund_pending:
                        cancelled = booking
                    else:
                        cancelled = await self._cancel_with_retry(
                            booking_reference=booking_reference, now=now or self.clock()
                        )
                    cancelled = await self._refund(booking=cancelled)
            except CancellationWindowClosedError:
                metrics.record_booking_cancellation(result='window_closed')
                raise

        metrics.record_booking_cancellation(result='success')
        self.event_publisher.publish(
            event=BookingCancelledEvent.from_booking(booking=cancelled, now=self.clock())
        )
        Logger.base.info(
            f'🚫 [BOOKING] {booking_reference} cancelled, '
            f'released seats={[str(s) for s in cancelled.seat_ids]}'
        )
        return cancelled

    async def _cancel_with_retry(self, *, booking_reference: str, now: datetime) -> Booking:
        for attempt in (1, 2):
            try:
                return await self._cancel_locked(booking_reference=booking_reference, now=now)
            except ConcurrencyConflict as e:
                Logger.base.warning(
                    f'🔁 [BOOKING] Cancel attempt {attempt} for {booking_reference}: {e}'
                )
        raise ConflictError('Booking was modified concurrently, please try again')

    async def _cancel_locked(self, *, booking_reference: str, now: datetime) -> Booking:
        async with self.uow_factory() as uow:
            booking = await uow.booking_repo.get(booking_reference=booking_reference)
            if booking is None:
                raise NotFoundError('Booking not found')
            showtime = await uow.showtime_repo.get(showtime_id=booking.showtime_id)
            seat_map = await uow.showtime_repo.get_seat_map(showtime_id=booking.showtime_id)
            if showtime is None or seat_map is None:
                raise NotFoundError('Showtime not found')

            booking.validate_can_be_cancelled(
                now=now, starts_at=showtime.starts_at, cutoff=self.cancellation_cutoff
            )

            conflicts = [
                str(seat_id)
                for seat_id in booking.seat_ids
                if seat_map.apply_transition(
                    seat_id,
                    expected_state=SeatState.BOOKED,
                    new_state=SeatState.FREE,
                    expected_owner_id=booking_reference,
                )
                == TransitionOutcome.CONFLICT
            ]
            if conflicts:
                raise ConcurrencyConflict(conflicts)

            await uow.showtime_repo.save_seats(
                showtime_id=booking.showtime_id, changes=seat_map.pending_changes()
            )
            cancelled = await uow.booking_repo.update_status(booking=booking.cancel(now=now))
            await uow.commit()

        for seat_id in cancelled.seat_ids:
            self.broadcaster.publish(
                showtime_id=cancelled.showtime_id, event=SeatReleased(seat_id=str(seat_id))
            )
        return cancelled

    async def _refund(self, *, booking: Booking) -> Booking:
        """Refund a committed cancellation and record the refund on the booking."""
        if not booking.refund_pending or booking.transaction_id is None:
            return booking

        try:
            refund = await self.payment_gateway.refund_payment(
                transaction_id=booking.transaction_id, amount=booking.total_amount
            )
        except Exception:
            metrics.record_booking_cancellation(result='refund_failed')
            Logger.base.error(
                f'💸 [BOOKING] {booking.booking_reference} is cancelled but the refund of '
                f'{booking.transaction_id} failed; cancelling again retries it'
            )
            raise

        async with self.uow_factory() as uow:
            refunded = await uow.booking_repo.update_status(
                booking=booking.record_refund(refund_id=refund.refund_id, now=self.clock())
            )
            await uow.commit()
        return refunded

    # ========== Read ==========

    @Logger.io
    async def get_booking(self, *, booking_reference: str) -> Optional[Booking]:
        async with self.uow_factory() as uow:
            return await uow.booking_repo.get(booking_reference=booking_reference.upper())
