"""
Seat Map Queries

Snapshots are read under the showtime lock so the returned fan-out
sequence matches the seat states exactly; a client that sees a gap in the
event sequence refetches the snapshot.
"""

from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.state.keyed_lock import KeyedLock
from src.service.reservation.app.dto.seat_map_dto import SeatMapSnapshot, SeatMapSubscription
from src.service.reservation.app.interface.i_seat_event_broadcaster import ISeatEventBroadcaster


class GetSeatMapUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        keyed_lock: KeyedLock,
        broadcaster: ISeatEventBroadcaster,
    ) -> None:
        self.uow_factory = uow_factory
        self.keyed_lock = keyed_lock
        self.broadcaster = broadcaster

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.unit_of_work.provider]),
        keyed_lock: KeyedLock = Depends(Provide[Container.keyed_lock]),
        broadcaster: ISeatEventBroadcaster = Depends(Provide[Container.seat_event_broadcaster]),
    ) -> Self:
        return cls(uow_factory=uow_factory, keyed_lock=keyed_lock, broadcaster=broadcaster)

    @Logger.io
    async def get_snapshot(self, *, showtime_id: str) -> SeatMapSnapshot:
        async with self.keyed_lock.hold(key=showtime_id):
            return await self._load(showtime_id=showtime_id)

    @Logger.io
    async def subscribe(self, *, showtime_id: str, subscriber_id: str) -> SeatMapSubscription:
        """
        Register for seat events and take the initial snapshot in one step.

        Every event with a sequence above `snapshot.sequence` arrives on the
        returned stream; nothing between the snapshot and the first event is lost.
        """
        async with self.keyed_lock.hold(key=showtime_id):
            snapshot = await self._load(showtime_id=showtime_id)
            events = self.broadcaster.subscribe(
                showtime_id=showtime_id, subscriber_id=subscriber_id
            )
        return SeatMapSubscription(subscriber_id=subscriber_id, snapshot=snapshot, events=events)

    async def unsubscribe(self, *, showtime_id: str, subscriber_id: str) -> None:
        await self.broadcaster.unsubscribe(showtime_id=showtime_id, subscriber_id=subscriber_id)

    async def _load(self, *, showtime_id: str) -> SeatMapSnapshot:
        async with self.uow_factory() as uow:
            showtime = await uow.showtime_repo.get(showtime_id=showtime_id)
            seat_map = await uow.showtime_repo.get_seat_map(showtime_id=showtime_id)
        if showtime is None or seat_map is None:
            raise NotFoundError('Showtime not found')
        return SeatMapSnapshot(
            showtime=showtime,
            seat_map=seat_map,
            sequence=self.broadcaster.current_sequence(showtime_id=showtime_id),
        )
