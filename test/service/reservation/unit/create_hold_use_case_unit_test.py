"""
Unit tests for CreateHoldUseCase request validation
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import DomainError
from src.service.reservation.app.command.create_hold_use_case import CreateHoldUseCase
from src.service.reservation.domain.value_object.seat_id import SeatId


@pytest.fixture
def hold_manager() -> MagicMock:
    manager = MagicMock()
    manager.create_hold = AsyncMock(return_value=MagicMock(id='hold-1'))
    return manager


@pytest.fixture
def use_case(hold_manager: MagicMock) -> CreateHoldUseCase:
    return CreateHoldUseCase(hold_manager=hold_manager)


class TestCreateHoldUseCase:
    @pytest.mark.unit
    async def test_parses_seats_and_applies_default_ttl(
        self, use_case: CreateHoldUseCase, hold_manager: MagicMock
    ) -> None:
        await use_case.execute(showtime_id='st-1', user_id=1, seat_ids=['a1', 'A2'])

        hold_manager.create_hold.assert_awaited_once_with(
            showtime_id='st-1',
            user_id=1,
            seat_ids=[SeatId(row='A', number=1), SeatId(row='A', number=2)],
            ttl=timedelta(seconds=settings.HOLD_TTL_SECONDS),
        )

    @pytest.mark.unit
    async def test_explicit_ttl_within_bounds_is_used(
        self, use_case: CreateHoldUseCase, hold_manager: MagicMock
    ) -> None:
        await use_case.execute(showtime_id='st-1', user_id=1, seat_ids=['A1'], ttl_seconds=120)

        assert hold_manager.create_hold.await_args.kwargs['ttl'] == timedelta(seconds=120)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        'seat_ids,ttl_seconds,message',
        [
            ([], None, 'At least one seat'),
            ([f'A{n}' for n in range(1, 12)], None, 'Cannot hold more than'),
            (['A1', 'A1'], None, 'Duplicate'),
            (['not-a-seat'], None, 'Invalid seat id'),
            (['A1'], 5, 'ttl_seconds must be between'),
            (['A1'], 7200, 'ttl_seconds must be between'),
        ],
    )
    async def test_invalid_requests_never_reach_the_hold_manager(
        self,
        use_case: CreateHoldUseCase,
        hold_manager: MagicMock,
        seat_ids: list[str],
        ttl_seconds: int | None,
        message: str,
    ) -> None:
        with pytest.raises(DomainError, match=message):
            await use_case.execute(
                showtime_id='st-1', user_id=1, seat_ids=seat_ids, ttl_seconds=ttl_seconds
            )

        hold_manager.create_hold.assert_not_awaited()
