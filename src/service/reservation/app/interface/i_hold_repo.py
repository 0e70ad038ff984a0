from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.service.reservation.domain.entity.hold_entity import Hold


class IHoldRepo(ABC):
    @abstractmethod
    async def add(self, *, hold: Hold) -> None:
        pass

    @abstractmethod
    async def get(self, *, hold_id: str) -> Optional[Hold]:
        pass

    @abstractmethod
    async def delete(self, *, hold_id: str) -> bool:
        """Returns False when the hold was already gone."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Hold]:
        pass

    @abstractmethod
    async def list_expired(self, *, now: datetime) -> list[Hold]:
        pass
