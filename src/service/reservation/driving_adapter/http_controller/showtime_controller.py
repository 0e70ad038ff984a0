from collections.abc import AsyncIterator

import anyio
from fastapi import APIRouter, Depends, status
from opentelemetry import trace
import orjson
from sse_starlette.sse import EventSourceResponse
import uuid_utils as uuid

from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.command.create_showtime_use_case import CreateShowtimeUseCase
from src.service.reservation.app.dto.seat_map_dto import SeatMapSnapshot
from src.service.reservation.app.dto.showtime_dto import SeatRowSpec
from src.service.reservation.app.query.get_seat_map_use_case import GetSeatMapUseCase
from src.service.reservation.domain.enum import SeatState
from src.service.reservation.driving_adapter.http_controller.auth.jwt_auth import (
    AuthenticatedUser,
)
from src.service.reservation.driving_adapter.http_controller.auth.role_auth import require_admin
from src.service.reservation.driving_adapter.http_controller.schema.showtime_schema import (
    SeatMapResponse,
    SeatResponse,
    ShowtimeCreateRequest,
    ShowtimeResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


def _seat_map_response(snapshot: SeatMapSnapshot) -> SeatMapResponse:
    seat_map = snapshot.seat_map
    return SeatMapResponse(
        showtime_id=snapshot.showtime.id,
        starts_at=snapshot.showtime.starts_at,
        sequence=snapshot.sequence,
        available=seat_map.count(SeatState.FREE),
        held=seat_map.count(SeatState.HELD),
        booked=seat_map.count(SeatState.BOOKED),
        seats=[
            SeatResponse(
                seat_id=str(seat.seat_id),
                row=seat.seat_id.row,
                number=seat.seat_id.number,
                seat_type=seat.seat_type,
                price=seat.price,
                state=seat.state,
            )
            for seat in seat_map.ordered_seats()
        ],
    )


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def create_showtime(
    request: ShowtimeCreateRequest,
    current_user: AuthenticatedUser = Depends(require_admin),
    use_case: CreateShowtimeUseCase = Depends(CreateShowtimeUseCase.depends),
) -> ShowtimeResponse:
    showtime, seat_map = await use_case.execute(
        movie_id=request.movie_id,
        theater_id=request.theater_id,
        starts_at=request.starts_at,
        prices=request.prices,
        layout=[
            SeatRowSpec(row=row.row, seat_count=row.seat_count, seat_type=row.seat_type)
            for row in request.layout
        ],
        is_active=request.is_active,
    )
    return ShowtimeResponse(
        id=showtime.id,
        movie_id=showtime.movie_id,
        theater_id=showtime.theater_id,
        starts_at=showtime.starts_at,
        prices=showtime.prices,
        is_active=showtime.is_active,
        total_seats=len(seat_map.seats),
    )


@router.get('/{showtime_id}/seats')
@Logger.io
async def get_seat_map(
    showtime_id: str,
    use_case: GetSeatMapUseCase = Depends(GetSeatMapUseCase.depends),
) -> SeatMapResponse:
    """Full seat map; clients refetch this whenever they detect a sequence gap."""
    snapshot = await use_case.get_snapshot(showtime_id=showtime_id)
    return _seat_map_response(snapshot)


# ============================ SSE Endpoint ============================


@router.get('/{showtime_id}/seats/stream', status_code=status.HTTP_200_OK)
@Logger.io
async def stream_seat_map(
    showtime_id: str,
    use_case: GetSeatMapUseCase = Depends(GetSeatMapUseCase.depends),
) -> EventSourceResponse:
    """
    SSE real-time seat state for one showtime

    Flow:
    1. Client connects → subscribe to the fan-out and take a snapshot atomically
    2. `snapshot` event with the full seat map and its sequence number
    3. `seat_held` / `seat_released` / `seat_booked` events, sequence-numbered
    4. Client disconnects → unsubscribe (holds are untouched)
    """
    subscriber_id = f'sse-{uuid.uuid7()}'
    subscription = await use_case.subscribe(showtime_id=showtime_id, subscriber_id=subscriber_id)
    Logger.base.info(f'📡 [SSE] {subscriber_id} watching showtime {showtime_id}')

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        try:
            snapshot = _seat_map_response(subscription.snapshot)
            yield {
                'event': 'snapshot',
                'id': str(snapshot.sequence),
                'data': snapshot.model_dump_json(),
            }

            async for envelope in subscription.events:
                yield {
                    'event': envelope.event.event_type,
                    'id': str(envelope.sequence),
                    'data': orjson.dumps(envelope.to_dict()).decode(),
                }

        except anyio.get_cancelled_exc_class():
            Logger.base.info(f'🔌 [SSE] Client disconnected: {subscriber_id}')
            raise
        except Exception as e:
            Logger.base.error(
                f'[SSE] Error in generator for {subscriber_id}: {type(e).__name__}: {e}'
            )
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await use_case.unsubscribe(showtime_id=showtime_id, subscriber_id=subscriber_id)

    return EventSourceResponse(event_generator())
