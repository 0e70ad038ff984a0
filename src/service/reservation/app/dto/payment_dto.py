from datetime import datetime

import attrs

from src.service.reservation.domain.enum import PaymentMethod


@attrs.define(frozen=True)
class PaymentConfirmation:
    transaction_id: str
    amount: int
    method: PaymentMethod
    paid_at: datetime


@attrs.define(frozen=True)
class RefundConfirmation:
    refund_id: str
    transaction_id: str
    amount: int
    refunded_at: datetime
