from fastapi import APIRouter, Depends, status
from opentelemetry import trace

from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.command.create_hold_use_case import CreateHoldUseCase
from src.service.reservation.app.command.release_hold_use_case import ReleaseHoldUseCase
from src.service.reservation.driving_adapter.http_controller.auth.current_user import (
    get_current_user_id,
)
from src.service.reservation.driving_adapter.http_controller.schema.hold_schema import (
    HoldCreateRequest,
    HoldReleaseResponse,
    HoldResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def create_hold(
    request: HoldCreateRequest,
    current_user_id: int = Depends(get_current_user_id),
    use_case: CreateHoldUseCase = Depends(CreateHoldUseCase.depends),
) -> HoldResponse:
    with tracer.start_as_current_span('controller.create_hold') as span:
        span.set_attribute('showtime_id', request.showtime_id)
        span.set_attribute('user_id', current_user_id)

        hold = await use_case.execute(
            showtime_id=request.showtime_id,
            user_id=current_user_id,
            seat_ids=request.seat_ids,
            ttl_seconds=request.ttl_seconds,
        )

        span.set_attribute('hold.id', hold.id)
        return HoldResponse(
            hold_id=hold.id,
            showtime_id=hold.showtime_id,
            seats=hold.seat_labels,
            total_amount=hold.total_amount,
            created_at=hold.created_at,
            expires_at=hold.expires_at,
        )


@router.delete('/{hold_id}', status_code=status.HTTP_200_OK)
@Logger.io
async def release_hold(
    hold_id: str,
    current_user_id: int = Depends(get_current_user_id),
    use_case: ReleaseHoldUseCase = Depends(ReleaseHoldUseCase.depends),
) -> HoldReleaseResponse:
    released = await use_case.execute(hold_id=hold_id, user_id=current_user_id)
    return HoldReleaseResponse(hold_id=hold_id, released=released)
