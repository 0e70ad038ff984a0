"""
Hold Manager integration tests

Real Hold Manager over a per-test SQLite database with a fake clock.

Covers:
- All-or-nothing holds and exclusivity under concurrent requests
- Expiry exactly at the deadline, release and its idempotency
- Overdue holds reaped when they block a new request
- Deadlines re-armed from storage after a restart
"""

from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock

import anyio
import pytest

from src.platform.database.db_setting import Database
from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
)
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.enum import SeatState
from src.service.reservation.domain.reservation_errors import (
    ConcurrencyConflict,
    SeatUnavailableError,
)
from test.shared.utils import FakeClock, ReservationCore, build_reservation_core
from test.util_constant import USER_ALICE, USER_BOB, USER_CAROL


FREE = SeatState.FREE
HELD = SeatState.HELD


class TestCreateHold:
    @pytest.mark.integration
    async def test_hold_claims_seats_and_prices_them(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()

        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'B1'])

        assert hold.seat_labels == ['A1', 'B1']
        assert hold.total_amount == 250 + 500
        assert hold.expires_at == core.clock() + timedelta(minutes=10)
        states = await core.seat_states(showtime_id=showtime_id)
        assert states['A1'] == HELD and states['B1'] == HELD
        assert hold.id in core.expiry_queue

    @pytest.mark.integration
    async def test_partial_conflict_holds_nothing(self, core: ReservationCore) -> None:
        # Given: Bob already holds A2
        showtime_id = await core.create_showtime()
        await core.hold(showtime_id=showtime_id, user_id=USER_BOB, seats=['A2'])

        # When: Alice asks for A1-A3
        with pytest.raises(SeatUnavailableError) as exc_info:
            await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2', 'A3'])

        # Then: only A2 is reported and A1/A3 stay free
        assert exc_info.value.seat_ids == ['A2']
        states = await core.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2'], states['A3']) == (FREE, HELD, FREE)

    @pytest.mark.integration
    async def test_concurrent_requests_for_one_seat_have_one_winner(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        winners: list[Hold] = []
        losers: list[SeatUnavailableError] = []

        async def attempt(user_id: int) -> None:
            try:
                winners.append(
                    await core.hold(showtime_id=showtime_id, user_id=user_id, seats=['A5', 'A6'])
                )
            except SeatUnavailableError as e:
                losers.append(e)

        async with anyio.create_task_group() as tg:
            for user_id in range(1, 6):
                tg.start_soon(attempt, user_id)

        assert len(winners) == 1
        assert len(losers) == 4
        snapshot = await core.get_seat_map_use_case.get_snapshot(showtime_id=showtime_id)
        assert snapshot.seat_map.count(HELD) == 2
        assert {seat.owner_id for seat in snapshot.seat_map.seats_owned_by(winners[0].id)} == {
            winners[0].id
        }

    @pytest.mark.integration
    async def test_unknown_showtime_and_seat_are_not_found(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()

        with pytest.raises(NotFoundError):
            await core.hold(showtime_id='missing', user_id=USER_ALICE, seats=['A1'])
        with pytest.raises(NotFoundError):
            await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'Z1'])

        states = await core.seat_states(showtime_id=showtime_id)
        assert states['A1'] == FREE

    @pytest.mark.integration
    async def test_started_showtime_cannot_be_held(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime(starts_in=timedelta(hours=1))
        core.clock.advance(hours=1)

        with pytest.raises(DomainError, match='no longer open'):
            await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])


class TestHoldExpiry:
    @pytest.mark.integration
    async def test_seats_free_only_once_deadline_passes(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1', 'A2'])

        # Just before the deadline nothing happens
        core.clock.advance(minutes=9, seconds=59)
        assert await core.hold_manager.expire_due_holds() == 0
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == HELD

        # At t0 + T + ε both seats come back
        core.clock.advance(seconds=2)
        assert await core.hold_manager.expire_due_holds() == 1

        states = await core.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2']) == (FREE, FREE)
        assert await core.hold_manager.get_hold(hold_id=hold.id) is None
        assert hold.id not in core.expiry_queue

    @pytest.mark.integration
    async def test_expired_hold_is_re_holdable_by_someone_else(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        core.clock.advance(minutes=11)
        await core.hold_manager.expire_due_holds()

        hold = await core.hold(showtime_id=showtime_id, user_id=USER_BOB, seats=['A1'])

        assert hold.user_id == USER_BOB

    @pytest.mark.integration
    async def test_overdue_hold_blocking_a_request_is_reaped(self, core: ReservationCore) -> None:
        # Given: Alice's hold is overdue but its timer has not fired yet
        showtime_id = await core.create_showtime()
        stale = await core.hold(
            showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'], ttl=timedelta(minutes=1)
        )
        core.clock.advance(minutes=2)

        # When
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_BOB, seats=['A1', 'A2'])

        # Then
        assert hold.user_id == USER_BOB
        assert await core.hold_manager.get_hold(hold_id=stale.id) is None

    @pytest.mark.integration
    async def test_storage_sweep_releases_unarmed_overdue_holds(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A3'])
        core.expiry_queue.disarm(key=hold.id)
        core.clock.advance(minutes=30)

        assert await core.hold_manager.sweep_expired_holds() == 1
        assert (await core.seat_states(showtime_id=showtime_id))['A3'] == FREE


class TestReleaseHold:
    @pytest.mark.integration
    async def test_release_is_idempotent(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])

        assert await core.hold_manager.release_hold(hold_id=hold.id, user_id=USER_ALICE) is True
        assert await core.hold_manager.release_hold(hold_id=hold.id, user_id=USER_ALICE) is False

        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == FREE
        assert hold.id not in core.expiry_queue

    @pytest.mark.integration
    async def test_only_holder_can_release(self, core: ReservationCore) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])

        with pytest.raises(ForbiddenError):
            await core.hold_manager.release_hold(hold_id=hold.id, user_id=USER_CAROL)

        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == HELD

    @pytest.mark.integration
    async def test_release_retries_once_after_a_storage_conflict(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        release_once = core.hold_manager._release_once
        lost_races = [ConcurrencyConflict(['A1'])]

        async def lose_first_race(**kwargs: Any) -> Any:
            if lost_races:
                raise lost_races.pop()
            return await release_once(**kwargs)

        release_once_mock = AsyncMock(side_effect=lose_first_race)
        core.hold_manager._release_once = release_once_mock  # type: ignore[method-assign]

        assert await core.hold_manager.release_hold(hold_id=hold.id) is True

        assert release_once_mock.await_count == 2
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == FREE

    @pytest.mark.integration
    async def test_release_that_keeps_conflicting_is_a_conflict_error(
        self, core: ReservationCore
    ) -> None:
        showtime_id = await core.create_showtime()
        hold = await core.hold(showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'])
        core.hold_manager._release_once = AsyncMock(  # type: ignore[method-assign]
            side_effect=ConcurrencyConflict(['A1'])
        )

        with pytest.raises(ConflictError):
            await core.hold_manager.release_hold(hold_id=hold.id)

        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == HELD
        assert (await core.seat_states(showtime_id=showtime_id))['A1'] == HELD


class TestRestart:
    @pytest.mark.integration
    async def test_deadlines_are_rearmed_from_storage(
        self, core: ReservationCore, database: Database, clock: FakeClock
    ) -> None:
        # Given: two holds, one of which will be overdue at restart time
        showtime_id = await core.create_showtime()
        short = await core.hold(
            showtime_id=showtime_id, user_id=USER_ALICE, seats=['A1'], ttl=timedelta(minutes=1)
        )
        long = await core.hold(
            showtime_id=showtime_id, user_id=USER_BOB, seats=['A2'], ttl=timedelta(minutes=20)
        )
        clock.advance(minutes=5)

        # When: a fresh process starts over the same storage
        restarted = build_reservation_core(database=database, clock=clock)
        armed = await restarted.hold_manager.rearm_from_storage()

        # Then: the overdue hold is released, the live one keeps its deadline
        assert armed == 1
        assert restarted.expiry_queue.deadline_of(key=long.id) == long.expires_at
        assert await restarted.hold_manager.get_hold(hold_id=short.id) is None
        states = await restarted.seat_states(showtime_id=showtime_id)
        assert (states['A1'], states['A2']) == (FREE, HELD)

        clock.advance(minutes=20)
        assert await restarted.hold_manager.expire_due_holds() == 1
        assert (await restarted.seat_states(showtime_id=showtime_id))['A2'] == FREE
