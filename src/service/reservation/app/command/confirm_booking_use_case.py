"""
Confirm Booking Use Case

Flow:
1. Check the hold is live and belongs to the caller
2. Charge the payment collaborator (a decline leaves the hold untouched)
3. Booking Ledger converts the hold into a Confirmed booking
4. If the hold expired in between, refund the charge and surface HoldExpiredError
"""

from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.clock import Clock, utc_now
from src.platform.config.di import Container
from src.platform.exception.exceptions import ForbiddenError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.reservation_metrics import metrics
from src.platform.observability.tracing import reservation_span_attributes
from src.service.reservation.app.interface.i_payment_gateway import IPaymentGateway
from src.service.reservation.app.service.booking_ledger import BookingLedger
from src.service.reservation.app.service.hold_manager import HoldManager
from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.enum import PaymentMethod
from src.service.reservation.domain.reservation_errors import HoldExpiredError, PaymentError


class ConfirmBookingUseCase:
    def __init__(
        self,
        *,
        hold_manager: HoldManager,
        booking_ledger: BookingLedger,
        payment_gateway: IPaymentGateway,
        clock: Clock = utc_now,
    ) -> None:
        self.hold_manager = hold_manager
        self.booking_ledger = booking_ledger
        self.payment_gateway = payment_gateway
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        hold_manager: HoldManager = Depends(Provide[Container.hold_manager]),
        booking_ledger: BookingLedger = Depends(Provide[Container.booking_ledger]),
        payment_gateway: IPaymentGateway = Depends(Provide[Container.payment_gateway]),
    ) -> Self:
        return cls(
            hold_manager=hold_manager,
            booking_ledger=booking_ledger,
            payment_gateway=payment_gateway,
        )

    @Logger.io
    async def execute(
        self,
        *,
        hold_id: str,
        user_id: int,
        payment_method: PaymentMethod,
        payment_token: str,
    ) -> Booking:
        with self.tracer.start_as_current_span(
            'use_case.confirm_booking',
            attributes=reservation_span_attributes(hold_id=hold_id, user_id=user_id),
        ):
            hold = await self.hold_manager.get_hold(hold_id=hold_id)
            if hold is None or hold.is_expired(now=self.clock()):
                metrics.record_booking_confirmation(result='hold_expired')
                raise HoldExpiredError()
            if hold.user_id != user_id:
                raise ForbiddenError('Only the holder can confirm this hold')

            try:
                payment = await self.payment_gateway.charge_payment(
                    amount=hold.total_amount, method=payment_method, token=payment_token
                )
            except PaymentError:
                metrics.record_booking_confirmation(result='payment_declined')
                raise

            try:
                return await self.booking_ledger.confirm_booking(
                    hold_id=hold_id, payment=payment, payment_method=payment_method
                )
            except Exception as e:
                # No booking exists, so the charge must not stand
                refund = await self.payment_gateway.refund_payment(
                    transaction_id=payment.transaction_id, amount=payment.amount
                )
                Logger.base.warning(
                    f'💸 [BOOKING] Confirmation of hold {hold_id} failed ({type(e).__name__}), '
                    f'refunded {payment.transaction_id} as {refund.refund_id}'
                )
                raise
