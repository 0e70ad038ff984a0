from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.service.hold_manager import HoldManager


class ReleaseHoldUseCase:
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
    async def execute(self, *, hold_id: str, user_id: int) -> bool:
        """Returns False when there was nothing left to release."""
        return await self.hold_manager.release_hold(hold_id=hold_id, user_id=user_id)
