"""
Create Showtime Use Case

Creates a showtime together with its seat map. Prices are taken from the
showtime's per-type price table and frozen onto every seat.
"""

from datetime import datetime, timezone
from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
import uuid_utils as uuid

from src.platform.clock import Clock, utc_now
from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.dto.showtime_dto import SeatRowSpec
from src.service.reservation.domain.aggregate.seat_map_aggregate import Seat, SeatMap
from src.service.reservation.domain.entity.showtime_entity import Showtime
from src.service.reservation.domain.enum import SeatType
from src.service.reservation.domain.value_object.seat_id import SeatId


class CreateShowtimeUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self.uow_factory = uow_factory
        self.clock = clock

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
        movie_id: str,
        theater_id: str,
        starts_at: datetime,
        prices: dict[SeatType, int],
        layout: list[SeatRowSpec],
        is_active: bool = True,
    ) -> tuple[Showtime, SeatMap]:
        if starts_at.tzinfo is None:
            raise DomainError('starts_at must carry a timezone')
        starts_at = starts_at.astimezone(timezone.utc)
        if starts_at <= self.clock():
            raise DomainError('Showtime must start in the future')
        if not layout:
            raise DomainError('Seat layout must have at least one row')

        missing = sorted({row_spec.seat_type for row_spec in layout} - set(prices))
        if missing:
            raise DomainError(f'Missing price for seat type(s): {", ".join(missing)}')
        if any(price <= 0 for price in prices.values()):
            raise DomainError('Prices must be positive')

        seats: list[Seat] = []
        rows: set[str] = set()
        for row_spec in layout:
            row = row_spec.row.strip().upper()
            if row in rows:
                raise DomainError(f'Row {row} appears twice in the layout')
            rows.add(row)
            if row_spec.seat_count <= 0:
                raise DomainError(f'Row {row} must have at least one seat')
            for number in range(1, row_spec.seat_count + 1):
                seat_id = SeatId.from_str(f'{row}{number}')
                seats.append(
                    Seat(
                        seat_id=seat_id,
                        seat_type=row_spec.seat_type,
                        price=prices[row_spec.seat_type],
                    )
                )

        showtime = Showtime(
            id=str(uuid.uuid7()),
            movie_id=movie_id,
            theater_id=theater_id,
            starts_at=starts_at,
            prices=dict(prices),
            is_active=is_active,
        )
        seat_map = SeatMap.create(showtime_id=showtime.id, seats=seats)

        async with self.uow_factory() as uow:
            showtime = await uow.showtime_repo.create(showtime=showtime, seat_map=seat_map)
            await uow.commit()

        Logger.base.info(
            f'🎬 [SHOWTIME] {showtime.id} movie={movie_id} theater={theater_id} '
            f'starts_at={starts_at.isoformat()} seats={len(seats)}'
        )
        return showtime, seat_map
