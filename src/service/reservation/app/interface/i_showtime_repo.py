from abc import ABC, abstractmethod
from typing import Optional

from src.service.reservation.domain.aggregate.seat_map_aggregate import SeatChange, SeatMap
from src.service.reservation.domain.entity.showtime_entity import Showtime


class IShowtimeRepo(ABC):
    """Showtimes and their seat maps (the seat map is owned by its showtime)."""

    @abstractmethod
    async def create(self, *, showtime: Showtime, seat_map: SeatMap) -> Showtime:
        pass

    @abstractmethod
    async def get(self, *, showtime_id: str) -> Optional[Showtime]:
        pass

    @abstractmethod
    async def get_seat_map(self, *, showtime_id: str) -> Optional[SeatMap]:
        """Load the full seat map; None when the showtime does not exist."""
        pass

    @abstractmethod
    async def save_seats(self, *, showtime_id: str, changes: list[SeatChange]) -> None:
        """
        Write each seat only if storage still holds its expected state and owner.

        Raises:
            ConcurrencyConflict: another writer changed one of the seats first
        """
        pass
