"""
Unit tests for ConfirmBookingUseCase

Payment collaborator, Hold Manager and Booking Ledger are mocks: these tests
pin down the charge / convert / refund ordering only.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.platform.exception.exceptions import ForbiddenError
from src.service.reservation.app.command.confirm_booking_use_case import ConfirmBookingUseCase
from src.service.reservation.app.dto.payment_dto import PaymentConfirmation, RefundConfirmation
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.enum import PaymentMethod
from src.service.reservation.domain.reservation_errors import HoldExpiredError, PaymentError
from src.service.reservation.domain.value_object.seat_id import SeatId


NOW = datetime(2026, 12, 24, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def hold() -> Hold:
    return Hold.create(
        user_id=1,
        showtime_id='st-1',
        seats=[SeatId.from_str('A1'), SeatId.from_str('A2')],
        total_amount=500,
        now=NOW,
        ttl=timedelta(minutes=10),
    )


@pytest.fixture
def hold_manager(hold: Hold) -> MagicMock:
    manager = MagicMock()
    manager.get_hold = AsyncMock(return_value=hold)
    return manager


@pytest.fixture
def booking_ledger() -> MagicMock:
    ledger = MagicMock()
    ledger.confirm_booking = AsyncMock(return_value=MagicMock(booking_reference='AB12CD34'))
    return ledger


@pytest.fixture
def payment_gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.charge_payment = AsyncMock(
        return_value=PaymentConfirmation(
            transaction_id='PAY_MOCK_1', amount=500, method=PaymentMethod.CARD, paid_at=NOW
        )
    )
    gateway.refund_payment = AsyncMock(
        return_value=RefundConfirmation(
            refund_id='REF_MOCK_1', transaction_id='PAY_MOCK_1', amount=500, refunded_at=NOW
        )
    )
    return gateway


@pytest.fixture
def use_case(
    hold_manager: MagicMock, booking_ledger: MagicMock, payment_gateway: MagicMock
) -> ConfirmBookingUseCase:
    return ConfirmBookingUseCase(
        hold_manager=hold_manager,
        booking_ledger=booking_ledger,
        payment_gateway=payment_gateway,
        clock=lambda: NOW + timedelta(minutes=1),
    )


async def confirm(use_case: ConfirmBookingUseCase, hold: Hold, *, user_id: int = 1) -> object:
    return await use_case.execute(
        hold_id=hold.id, user_id=user_id, payment_method=PaymentMethod.CARD, payment_token='tok'
    )


class TestConfirmBookingUseCase:
    @pytest.mark.unit
    async def test_charges_hold_total_then_converts(
        self,
        use_case: ConfirmBookingUseCase,
        hold: Hold,
        payment_gateway: MagicMock,
        booking_ledger: MagicMock,
    ) -> None:
        booking = await confirm(use_case, hold)

        assert booking.booking_reference == 'AB12CD34'
        payment_gateway.charge_payment.assert_awaited_once_with(
            amount=500, method=PaymentMethod.CARD, token='tok'
        )
        booking_ledger.confirm_booking.assert_awaited_once()
        assert booking_ledger.confirm_booking.await_args.kwargs['hold_id'] == hold.id
        payment_gateway.refund_payment.assert_not_awaited()

    @pytest.mark.unit
    async def test_declined_payment_leaves_hold_untouched(
        self,
        use_case: ConfirmBookingUseCase,
        hold: Hold,
        payment_gateway: MagicMock,
        booking_ledger: MagicMock,
    ) -> None:
        payment_gateway.charge_payment.side_effect = PaymentError('declined')

        with pytest.raises(PaymentError):
            await confirm(use_case, hold)

        booking_ledger.confirm_booking.assert_not_awaited()

    @pytest.mark.unit
    async def test_expiry_during_conversion_refunds_the_charge(
        self,
        use_case: ConfirmBookingUseCase,
        hold: Hold,
        payment_gateway: MagicMock,
        booking_ledger: MagicMock,
    ) -> None:
        booking_ledger.confirm_booking.side_effect = HoldExpiredError()

        with pytest.raises(HoldExpiredError):
            await confirm(use_case, hold)

        payment_gateway.refund_payment.assert_awaited_once_with(
            transaction_id='PAY_MOCK_1', amount=500
        )

    @pytest.mark.unit
    async def test_missing_hold_is_expired_without_charging(
        self,
        use_case: ConfirmBookingUseCase,
        hold: Hold,
        hold_manager: MagicMock,
        payment_gateway: MagicMock,
    ) -> None:
        hold_manager.get_hold.return_value = None

        with pytest.raises(HoldExpiredError):
            await confirm(use_case, hold)

        payment_gateway.charge_payment.assert_not_awaited()

    @pytest.mark.unit
    async def test_only_the_holder_may_confirm(
        self, use_case: ConfirmBookingUseCase, hold: Hold, payment_gateway: MagicMock
    ) -> None:
        with pytest.raises(ForbiddenError):
            await confirm(use_case, hold, user_id=2)

        payment_gateway.charge_payment.assert_not_awaited()
