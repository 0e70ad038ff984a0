from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.db_setting import as_utc
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.interface.i_showtime_repo import IShowtimeRepo
from src.service.reservation.domain.aggregate.seat_map_aggregate import Seat, SeatChange, SeatMap
from src.service.reservation.domain.entity.showtime_entity import Showtime
from src.service.reservation.domain.enum import SeatState, SeatType
from src.service.reservation.domain.reservation_errors import ConcurrencyConflict
from src.service.reservation.domain.value_object.seat_id import SeatId
from src.service.reservation.driven_adapter.model.seat_model import SeatModel
from src.service.reservation.driven_adapter.model.showtime_model import ShowtimeModel


class ShowtimeRepoImpl(IShowtimeRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def create(self, *, showtime: Showtime, seat_map: SeatMap) -> Showtime:
        self.session.add(
            ShowtimeModel(
                id=showtime.id,
                movie_id=showtime.movie_id,
                theater_id=showtime.theater_id,
                starts_at=showtime.starts_at,
                prices={seat_type.value: price for seat_type, price in showtime.prices.items()},
                is_active=showtime.is_active,
            )
        )
        # Parent row must exist before the seat rows reference it
        await self.session.flush()
        self.session.add_all(
            [
                SeatModel(
                    showtime_id=showtime.id,
                    seat_id=str(seat.seat_id),
                    row=seat.seat_id.row,
                    number=seat.seat_id.number,
                    seat_type=seat.seat_type.value,
                    price=seat.price,
                    state=seat.state.value,
                    owner_id=seat.owner_id,
                )
                for seat in seat_map.ordered_seats()
            ]
        )
        await self.session.flush()
        created = await self.get(showtime_id=showtime.id)
        assert created is not None
        return created

    @Logger.io
    async def get(self, *, showtime_id: str) -> Optional[Showtime]:
        result = await self.session.execute(
            select(ShowtimeModel)
            .where(ShowtimeModel.id == showtime_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return self._model_to_entity(model)

    @Logger.io
    async def get_seat_map(self, *, showtime_id: str) -> Optional[SeatMap]:
        exists = await self.session.execute(
            select(ShowtimeModel.id).where(ShowtimeModel.id == showtime_id)
        )
        if exists.scalar_one_or_none() is None:
            return None

        result = await self.session.execute(
            select(SeatModel)
            .where(SeatModel.showtime_id == showtime_id)
            .execution_options(populate_existing=True)
        )
        return SeatMap.create(
            showtime_id=showtime_id,
            seats=[self._seat_to_entity(row) for row in result.scalars().all()],
        )

    @Logger.io
    async def save_seats(self, *, showtime_id: str, changes: list[SeatChange]) -> None:
        stale: list[str] = []
        for change in changes:
            seat = change.seat
            owner_matches = (
                SeatModel.owner_id.is_(None)
                if change.expected_owner_id is None
                else SeatModel.owner_id == change.expected_owner_id
            )
            result = await self.session.execute(
                update(SeatModel)
                .where(
                    SeatModel.showtime_id == showtime_id,
                    SeatModel.seat_id == str(seat.seat_id),
                    SeatModel.state == change.expected_state.value,
                    owner_matches,
                )
                .values(state=seat.state.value, owner_id=seat.owner_id)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                stale.append(str(seat.seat_id))
        if stale:
            raise ConcurrencyConflict(stale)

    @staticmethod
    def _model_to_entity(model: ShowtimeModel) -> Showtime:
        return Showtime(
            id=model.id,
            movie_id=model.movie_id,
            theater_id=model.theater_id,
            starts_at=as_utc(model.starts_at),  # type: ignore[arg-type]
            prices={SeatType(seat_type): price for seat_type, price in model.prices.items()},
            is_active=model.is_active,
            created_at=as_utc(model.created_at),
        )

    @staticmethod
    def _seat_to_entity(model: SeatModel) -> Seat:
        return Seat(
            seat_id=SeatId(row=model.row, number=model.number),
            seat_type=SeatType(model.seat_type),
            price=model.price,
            state=SeatState(model.state),
            owner_id=model.owner_id,
        )
