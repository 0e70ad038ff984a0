"""
Unit of Work Pattern - one database session and transaction shared by repositories

Architecture:
- UoW owns the session lifecycle
- UoW owns commit/rollback
- Repositories receive the shared session from the UoW
- Hold Manager / Booking Ledger coordinate several repositories through one UoW,
  so seat state and hold/booking rows change in the same transaction
"""

from __future__ import annotations

import abc
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.db_setting import Database


if TYPE_CHECKING:
    from src.service.reservation.app.interface.i_booking_repo import IBookingRepo
    from src.service.reservation.app.interface.i_hold_repo import IHoldRepo
    from src.service.reservation.app.interface.i_showtime_repo import IShowtimeRepo


class AbstractUnitOfWork(abc.ABC):
    """
    Usage:
        async with uow_factory() as uow:
            seat_map = await uow.showtime_repo.get_seat_map(showtime_id=...)
            ...
            await uow.commit()

    Leaving the block without commit rolls everything back.
    """

    showtime_repo: IShowtimeRepo
    hold_repo: IHoldRepo
    booking_repo: IBookingRepo

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    async def commit(self):
        await self._commit()

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(self, *, database: Database) -> None:
        self.database = database
        self._exit_stack: AsyncExitStack | None = None
        self.session: AsyncSession | None = None

    async def __aenter__(self):
        from src.service.reservation.driven_adapter.repo.booking_repo_impl import BookingRepoImpl
        from src.service.reservation.driven_adapter.repo.hold_repo_impl import HoldRepoImpl
        from src.service.reservation.driven_adapter.repo.showtime_repo_impl import (
            ShowtimeRepoImpl,
        )

        self._exit_stack = AsyncExitStack()
        self.session = await self._exit_stack.enter_async_context(self.database.session())

        self.showtime_repo = ShowtimeRepoImpl(session=self.session)
        self.hold_repo = HoldRepoImpl(session=self.session)
        self.booking_repo = BookingRepoImpl(session=self.session)

        return await super().__aenter__()

    async def __aexit__(self, *args):
        try:
            await super().__aexit__(*args)
        finally:
            assert self._exit_stack is not None
            await self._exit_stack.aclose()
            self._exit_stack = None
            self.session = None

    async def _commit(self):
        assert self.session is not None
        await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()


UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]
