from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.db_setting import as_utc
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.interface.i_hold_repo import IHoldRepo
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.value_object.seat_id import SeatId
from src.service.reservation.driven_adapter.model.seat_hold_model import SeatHoldModel


class HoldRepoImpl(IHoldRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def add(self, *, hold: Hold) -> None:
        self.session.add(
            SeatHoldModel(
                id=hold.id,
                user_id=hold.user_id,
                showtime_id=hold.showtime_id,
                seats=hold.seat_labels,
                total_amount=hold.total_amount,
                created_at=hold.created_at,
                expires_at=hold.expires_at,
            )
        )
        await self.session.flush()

    @Logger.io
    async def get(self, *, hold_id: str) -> Optional[Hold]:
        result = await self.session.execute(
            select(SeatHoldModel)
            .where(SeatHoldModel.id == hold_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def delete(self, *, hold_id: str) -> bool:
        result = await self.session.execute(
            delete(SeatHoldModel)
            .where(SeatHoldModel.id == hold_id)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @Logger.io
    async def list_all(self) -> list[Hold]:
        result = await self.session.execute(select(SeatHoldModel).order_by(SeatHoldModel.expires_at))
        return [self._model_to_entity(model) for model in result.scalars().all()]

    @Logger.io
    async def list_expired(self, *, now: datetime) -> list[Hold]:
        result = await self.session.execute(
            select(SeatHoldModel)
            .where(SeatHoldModel.expires_at <= now)
            .order_by(SeatHoldModel.expires_at)
        )
        return [self._model_to_entity(model) for model in result.scalars().all()]

    @staticmethod
    def _model_to_entity(model: SeatHoldModel) -> Hold:
        return Hold(
            id=model.id,
            user_id=model.user_id,
            showtime_id=model.showtime_id,
            seats=tuple(SeatId.from_str(label) for label in model.seats),
            total_amount=model.total_amount,
            created_at=as_utc(model.created_at),  # type: ignore[arg-type]
            expires_at=as_utc(model.expires_at),  # type: ignore[arg-type]
        )
