"""
Mock Payment Gateway

Stands in for the real payment provider. Tokens starting with `tok_fail`
are declined; everything else is charged immediately.
"""

import random
import string

from src.platform.clock import Clock, utc_now
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.dto.payment_dto import PaymentConfirmation, RefundConfirmation
from src.service.reservation.app.interface.i_payment_gateway import IPaymentGateway
from src.service.reservation.domain.enum import PaymentMethod
from src.service.reservation.domain.reservation_errors import PaymentError


DECLINED_TOKEN_PREFIX = 'tok_fail'


def _random_suffix(length: int = 12) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


class MockPaymentGatewayImpl(IPaymentGateway):
    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock

    @Logger.io
    async def charge_payment(
        self, *, amount: int, method: PaymentMethod, token: str
    ) -> PaymentConfirmation:
        if amount <= 0:
            raise PaymentError('Payment amount must be positive')
        if token.startswith(DECLINED_TOKEN_PREFIX):
            raise PaymentError('Payment was declined by the card issuer')

        return PaymentConfirmation(
            transaction_id=f'PAY_MOCK_{_random_suffix()}',
            amount=amount,
            method=method,
            paid_at=self._clock(),
        )

    @Logger.io
    async def refund_payment(self, *, transaction_id: str, amount: int) -> RefundConfirmation:
        return RefundConfirmation(
            refund_id=f'REF_MOCK_{_random_suffix()}',
            transaction_id=transaction_id,
            amount=amount,
            refunded_at=self._clock(),
        )
