"""
Booking Ledger integration tests

Confirmation races against expiry, cancellation window, double-booking
protection and booking queries.
"""

from datetime import timedelta
import re
from unittest.mock import AsyncMock

import anyio
import pytest
from sqlalchemy import delete, update

from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
)
from src.service.reservation.app.dto.payment_dto import PaymentConfirmation
from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.enum import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SeatState,
)
from src.service.reservation.domain.reservation_errors import (
    CancellationWindowClosedError,
    HoldExpiredError,
    PaymentError,
    SeatUnavailableError,
)
from src.service.reservation.domain.value_object.seat_id import SeatId
from src.service.reservation.driven_adapter.model.seat_model import SeatModel
from src.service.reservation.driven_adapter.model.showtime_model import ShowtimeModel
from test.shared.utils import ReservationCore
from test.util_constant import DECLINED_PAYMENT_TOKEN, USER_ALICE, USER_BOB


class TestConfirmBooking:
    @pytest.mark.integration
    async def test_confirm_converts_hold_into_paid_booking(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])

        booking = await core.confirm(hold=hold)

        assert re.fullmatch(r'[A-Z0-9]{8}', booking.booking_reference)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.total_amount == 500
        assert booking.transaction_id and booking.transaction_id.startswith('PAY_MOCK_')
        states = await core.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2']) == (SeatState.BOOKED, SeatState.BOOKED)
        # Hold is consumed and its timer disarmed
        assert await core.hold_manager.get_hold(hold_id=hold.id) is None
        assert hold.id not in core.expiry_queue
        assert core.event_publisher.pending == 1

    @pytest.mark.integration
    async def test_confirm_just_before_deadline_wins_over_expiry(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        core.clock.advance(minutes=9, seconds=59)

        await core.confirm(hold=hold)
        core.clock.advance(minutes=1)

        # The timer was disarmed by the confirmation, nothing left to expire
        assert await core.hold_manager.expire_due_holds() == 0
        assert await core.hold_manager.sweep_expired_holds() == 0
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == SeatState.BOOKED

    @pytest.mark.integration
    async def test_confirm_after_deadline_fails_and_frees_seats(
        self, core: ReservationCore
    ) -> None:
        # Given: payment was taken before the deadline, conversion runs after it
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])
        payment = await core.payment_gateway.charge_payment(
            amount=hold.total_amount, method=PaymentMethod.CARD, token='tok_visa'
        )
        core.clock.advance(minutes=10)

        # When
        with pytest.raises(HoldExpiredError):
            await core.booking_ledger.confirm_booking(
                hold_id=hold.id, payment=payment, payment_method=PaymentMethod.CARD
            )

        # Then: no booking, seats released as if the timer had fired
        bookings, total = await core.list_my_bookings_use_case.execute(user_id=USER_ALICE)
        assert (bookings, total) == ([], 0)
        states = await core.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2']) == (SeatState.FREE, SeatState.FREE)

    @pytest.mark.integration
    async def test_expired_hold_is_rejected_before_charging(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        core.clock.advance(minutes=10)
        await core.hold_manager.expire_due_holds()

        with pytest.raises(HoldExpiredError):
            await core.confirm(hold=hold)

        assert core.event_publisher.pending == 0

    @pytest.mark.integration
    async def test_declined_payment_keeps_the_hold(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])

        with pytest.raises(PaymentError):
            await core.confirm(hold=hold, token=DECLINED_PAYMENT_TOKEN)

        assert await core.hold_manager.get_hold(hold_id=hold.id) is not None
        assert hold.id in core.expiry_queue
        # Retry with a good card still works
        booking = await core.confirm(hold=hold)
        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.integration
    async def test_payment_amount_must_match_hold(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        short_payment = PaymentConfirmation(
            transaction_id='PAY_MOCK_SHORT',
            amount=hold.total_amount - 1,
            method=PaymentMethod.CARD,
            paid_at=core.clock(),
        )

        with pytest.raises(DomainError, match='does not match'):
            await core.booking_ledger.confirm_booking(
                hold_id=hold.id, payment=short_payment, payment_method=PaymentMethod.CARD
            )

        # Failed conversion re-arms the still-live hold
        assert hold.id in core.expiry_queue

    @pytest.mark.integration
    async def test_racing_confirm_and_expiry_produce_one_outcome(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])
        payment = await core.payment_gateway.charge_payment(
            amount=hold.total_amount, method=PaymentMethod.CARD, token='tok_visa'
        )
        outcomes: list[object] = []

        async def confirm() -> None:
            try:
                outcomes.append(
                    await core.booking_ledger.confirm_booking(
                        hold_id=hold.id, payment=payment, payment_method=PaymentMethod.CARD
                    )
                )
            except HoldExpiredError as e:
                outcomes.append(e)

        async def expire() -> None:
            outcomes.append(await core.hold_manager.expire_hold(hold_id=hold.id))

        async with anyio.create_task_group() as tg:
            tg.start_soon(expire)
            tg.start_soon(confirm)

        # Hold was live, so the expiry re-check declines and the booking wins
        assert False in outcomes
        booking = next(o for o in outcomes if isinstance(o, Booking))
        states = await core.seat_states(showtime_id=showtime_id)
        assert all(states[str(seat_id)] == SeatState.BOOKED for seat_id in booking.seat_ids)

    @pytest.mark.integration
    async def test_no_seat_is_ever_booked_twice(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        bookings: list[Booking] = []

        async def reserve(user_id: int, seats: list[str]) -> None:
            try:
                hold = await core.hold(showtime_id=showtime_id, user_id=user_id, seats=seats)
            except SeatUnavailableError:
                return
            bookings.append(await core.confirm(hold=hold))

        async with anyio.create_task_group() as tg:
            for user_id, seats in enumerate(
                [['A1', 'A2'], ['A2', 'A3'], ['A3', 'A4'], ['A4', 'A5'], ['A1', 'A5']], start=1
            ):
                tg.start_soon(reserve, user_id, seats)

        booked = [str(seat_id) for booking in bookings for seat_id in booking.seat_ids]
        assert booked
        assert len(booked) == len(set(booked))
        snapshot = await core.get_seat_map_use_case.get_snapshot(showtime_id=showtime_id)
        assert snapshot.seat_map.count(SeatState.BOOKED) == len(booked)


class TestCancelBooking:
    @pytest.mark.integration
    async def test_cancel_three_hours_before_start_frees_and_refunds(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime(starts_in=timedelta(hours=5))
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])
        booking = await core.confirm(hold=hold)
        core.clock.advance(hours=2)

        cancelled = await core.booking_ledger.cancel_booking(
            booking_reference=booking.booking_reference.lower(), user_id=USER_ALICE
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.payment_status == PaymentStatus.REFUNDED
        assert cancelled.refund_id and cancelled.refund_id.startswith('REF_MOCK_')
        assert cancelled.cancelled_at == core.clock()
        states = await core.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2']) == (SeatState.FREE, SeatState.FREE)
        assert core.event_publisher.pending == 2

        # Freed seats can be held again
        again = await core.hold(showtime_id=showtime_id, user_id=USER_BOB, seats=['A1'])
        assert again.user_id == USER_BOB

    @pytest.mark.integration
    async def test_cancel_one_hour_before_start_is_rejected(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime(starts_in=timedelta(hours=5))
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)
        core.clock.advance(hours=4)

        with pytest.raises(CancellationWindowClosedError):
            await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

        stored = await core.booking_ledger.get_booking(booking_reference=booking.booking_reference)
        assert stored is not None and stored.status == BookingStatus.CONFIRMED
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == SeatState.BOOKED

    @pytest.mark.integration
    async def test_cancel_at_exact_cutoff_is_allowed(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime(starts_in=timedelta(hours=5))
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)

        cancelled = await core.booking_ledger.cancel_booking(
            booking_reference=booking.booking_reference, now=core.clock() + timedelta(hours=3)
        )

        assert cancelled.status == BookingStatus.CANCELLED

    @pytest.mark.integration
    async def test_cancelled_booking_cannot_be_cancelled_again(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)
        await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

        with pytest.raises(DomainError, match='already cancelled'):
            await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

    @pytest.mark.integration
    async def test_only_owner_can_cancel(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)

        with pytest.raises(ForbiddenError):
            await core.booking_ledger.cancel_booking(
                booking_reference=booking.booking_reference, user_id=USER_BOB
            )


    @pytest.mark.integration
    async def test_failed_refund_keeps_cancellation_and_retry_refunds(
        self, core: ReservationCore
    ) -> None:
        # Given: a confirmed booking and a refund provider that is down
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)
        refund_payment = core.payment_gateway.refund_payment
        core.payment_gateway.refund_payment = AsyncMock(  # type: ignore[method-assign]
            side_effect=PaymentError('Refund provider unavailable')
        )

        # When
        with pytest.raises(PaymentError):
            await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

        # Then: the cancellation is committed and the refund is still owed
        stored = await core.booking_ledger.get_booking(booking_reference=booking.booking_reference)
        assert stored is not None
        assert stored.status == BookingStatus.CANCELLED
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.refund_id is None
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == SeatState.FREE
        assert core.event_publisher.pending == 1

        # When: the provider recovers and the owner cancels again
        core.payment_gateway.refund_payment = refund_payment  # type: ignore[method-assign]
        refunded = await core.booking_ledger.cancel_booking(
            booking_reference=booking.booking_reference, user_id=USER_ALICE
        )

        # Then
        assert refunded.status == BookingStatus.CANCELLED
        assert refunded.payment_status == PaymentStatus.REFUNDED
        assert refunded.refund_id and refunded.refund_id.startswith('REF_MOCK_')
        assert core.event_publisher.pending == 2

    @pytest.mark.integration
    async def test_refund_is_issued_only_after_cancellation_commits(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])
        booking = await core.confirm(hold=hold)
        seen_at_refund: list[tuple[BookingStatus, str]] = []
        refund_payment = core.payment_gateway.refund_payment

        async def observing_refund(*, transaction_id: str, amount: int):
            stored = await core.booking_ledger.get_booking(
                booking_reference=booking.booking_reference
            )
            async with core.uow_factory() as uow:
                seat_map = await uow.showtime_repo.get_seat_map(showtime_id=showtime_id)
            assert stored is not None and seat_map is not None
            seen_at_refund.append((stored.status, seat_map.get_state(SeatId.from_str('A1'))))
            return await refund_payment(transaction_id=transaction_id, amount=amount)

        core.payment_gateway.refund_payment = observing_refund  # type: ignore[method-assign]

        await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

        assert seen_at_refund == [(BookingStatus.CANCELLED, SeatState.FREE)]

    @pytest.mark.integration
    async def test_cancel_that_keeps_losing_the_seat_race_is_a_conflict(
        self, core: ReservationCore
    ) -> None:
        # Given: storage shows A1 owned by another booking
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        booking = await core.confirm(hold=hold)
        async with core.database.session() as session:
            await session.execute(
                update(SeatModel)
                .where(SeatModel.showtime_id == showtime_id, SeatModel.seat_id == 'A1')
                .values(owner_id='ZZZZZZZZ')
            )
            await session.commit()
        refund_payment = AsyncMock()
        core.payment_gateway.refund_payment = refund_payment  # type: ignore[method-assign]

        # When / Then
        with pytest.raises(ConflictError):
            await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)

        stored = await core.booking_ledger.get_booking(booking_reference=booking.booking_reference)
        assert stored is not None and stored.status == BookingStatus.CONFIRMED
        refund_payment.assert_not_awaited()


class TestMissingShowtime:
    @pytest.mark.integration
    async def test_confirm_and_cancel_report_a_removed_showtime(
        self, core: ReservationCore
    ) -> None:
        # Given: a booking and a live hold, then the showtime row disappears
        showtime_id = await core.create_showtime()
        booking = await core.confirm(
            hold=await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        )
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A2'])
        async with core.database.session() as session:
            await session.execute(delete(ShowtimeModel).where(ShowtimeModel.id == showtime_id))
            await session.commit()

        # When / Then: confirmation fails cleanly and the hold is back under expiry
        with pytest.raises(NotFoundError, match='Showtime not found'):
            await core.confirm(hold=hold)
        assert hold.id in core.expiry_queue

        with pytest.raises(NotFoundError, match='Showtime not found'):
            await core.booking_ledger.cancel_booking(booking_reference=booking.booking_reference)
        stored = await core.booking_ledger.get_booking(booking_reference=booking.booking_reference)
        assert stored is not None and stored.status == BookingStatus.CONFIRMED


class TestListMyBookings:
    @pytest.mark.integration
    async def test_lists_newest_first_with_status_filter(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        first = await core.confirm(
            hold=await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        )
        core.clock.advance(minutes=1)
        second = await core.confirm(
            hold=await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A2'])
        )
        await core.confirm(
            hold=await core.hold(showtime_id=showtime_id, user_id=USER_BOB, seats=['A3'])
        )
        await core.booking_ledger.cancel_booking(booking_reference=first.booking_reference)

        bookings, total = await core.list_my_bookings_use_case.execute(user_id=USER_ALICE)
        assert total == 2
        assert [b.booking_reference for b in bookings] == [
            second.booking_reference,
            first.booking_reference,
        ]

        cancelled, cancelled_total = await core.list_my_bookings_use_case.execute(
            user_id=USER_ALICE, status=BookingStatus.CANCELLED
        )
        assert cancelled_total == 1
        assert cancelled[0].booking_reference == first.booking_reference

        page_two, _ = await core.list_my_bookings_use_case.execute(
            user_id=USER_ALICE, page=2, limit=1
        )
        assert [b.booking_reference for b in page_two] == [first.booking_reference]
