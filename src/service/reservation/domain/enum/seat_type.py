from enum import StrEnum


class SeatType(StrEnum):
    STANDARD = 'standard'
    PREMIUM = 'premium'
    VIP = 'vip'


class PaymentMethod(StrEnum):
    CARD = 'card'
    PAYPAL = 'paypal'
    CASH = 'cash'
    WALLET = 'wallet'
