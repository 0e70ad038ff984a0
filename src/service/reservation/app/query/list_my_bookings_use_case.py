from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.logging.loguru_io import Logger
from src.service.reservation.domain.entity.booking_entity import Booking
from src.service.reservation.domain.enum import BookingStatus


class ListMyBookingsUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.unit_of_work.provider]),
    ) -> Self:
        return cls(uow_factory=uow_factory)

    @Logger.io
    async def execute(
        self,
        *,
        user_id: int,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """Newest first. Returns (bookings on the page, total matching bookings)."""
        async with self.uow_factory() as uow:
            return await uow.booking_repo.list_by_user(
                user_id=user_id, status=status, offset=(page - 1) * limit, limit=limit
            )
