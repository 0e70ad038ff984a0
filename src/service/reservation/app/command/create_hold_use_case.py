from datetime import timedelta
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.reservation_metrics import metrics
from src.service.reservation.app.service.hold_manager import HoldManager
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.value_object.seat_id import SeatId


class CreateHoldUseCase:
    """
    Validate a hold request (seat id format, seat count, TTL bounds) and
    hand it to the Hold Manager.
    """

    def __init__(self, *, hold_manager: HoldManager) -> None:
        self.hold_manager = hold_manager

    @classmethod
    @inject
    def depends(
        cls,
        hold_manager: HoldManager = Depends(Provide[Container.hold_manager]),
    ) -> Self:
        return cls(hold_manager=hold_manager)

    @Logger.io
    async def execute(
        self,
        *,
        showtime_id: str,
        user_id: int,
        seat_ids: list[str],
        ttl_seconds: Optional[int] = None,
    ) -> Hold:
        try:
            parsed = self._parse_seats(seat_ids)
            ttl = self._resolve_ttl(ttl_seconds)
        except DomainError:
            metrics.record_hold_request(result='invalid', duration=0.0)
            raise

        return await self.hold_manager.create_hold(
            showtime_id=showtime_id, user_id=user_id, seat_ids=parsed, ttl=ttl
        )

    @staticmethod
    def _parse_seats(seat_ids: list[str]) -> list[SeatId]:
        if not seat_ids:
            raise DomainError('At least one seat is required')
        if len(seat_ids) > settings.MAX_SEATS_PER_HOLD:
            raise DomainError(f'Cannot hold more than {settings.MAX_SEATS_PER_HOLD} seats at once')
        return SeatId.parse_many(seat_ids)

    @staticmethod
    def _resolve_ttl(ttl_seconds: Optional[int]) -> timedelta:
        if ttl_seconds is None:
            return timedelta(seconds=settings.HOLD_TTL_SECONDS)
        if not settings.HOLD_TTL_MIN_SECONDS <= ttl_seconds <= settings.HOLD_TTL_MAX_SECONDS:
            raise DomainError(
                f'ttl_seconds must be between {settings.HOLD_TTL_MIN_SECONDS} '
                f'and {settings.HOLD_TTL_MAX_SECONDS}'
            )
        return timedelta(seconds=ttl_seconds)
