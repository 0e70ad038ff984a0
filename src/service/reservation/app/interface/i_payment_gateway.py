from abc import ABC, abstractmethod

from src.service.reservation.app.dto.payment_dto import PaymentConfirmation, RefundConfirmation
from src.service.reservation.domain.enum import PaymentMethod


class IPaymentGateway(ABC):
    @abstractmethod
    async def charge_payment(
        self, *, amount: int, method: PaymentMethod, token: str
    ) -> PaymentConfirmation:
        """
        Raises:
            PaymentError: the charge was declined
        """
        pass

    @abstractmethod
    async def refund_payment(self, *, transaction_id: str, amount: int) -> RefundConfirmation:
        pass
