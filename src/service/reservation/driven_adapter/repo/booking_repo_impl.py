from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.db_setting import as_utc
from src.platform.logging.loguru_io import Logger
from src.service.reservation.app.interface.i_booking_repo import IBookingRepo
from src.service.reservation.domain.entity.booking_entity import BookedSeat, Booking
from src.service.reservation.domain.enum import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SeatType,
)
from src.service.reservation.domain.value_object.seat_id import SeatId
from src.service.reservation.driven_adapter.model.booking_model import BookingModel


class BookingRepoImpl(IBookingRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def add(self, *, booking: Booking) -> Booking:
        model = BookingModel(
            booking_reference=booking.booking_reference,
            user_id=booking.user_id,
            showtime_id=booking.showtime_id,
            seats=[
                {
                    'seat_id': str(seat.seat_id),
                    'seat_type': seat.seat_type.value,
                    'price': seat.price,
                }
                for seat in booking.seats
            ],
            total_amount=booking.total_amount,
            payment_method=booking.payment_method.value,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            transaction_id=booking.transaction_id,
            paid_at=booking.paid_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )
        self.session.add(model)
        await self.session.flush()
        return self._model_to_entity(model)

    @Logger.io
    async def get(self, *, booking_reference: str) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.booking_reference == booking_reference)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def exists(self, *, booking_reference: str) -> bool:
        result = await self.session.execute(
            select(BookingModel.id).where(BookingModel.booking_reference == booking_reference)
        )
        return result.scalar_one_or_none() is not None

    @Logger.io
    async def update_status(self, *, booking: Booking) -> Booking:
        await self.session.execute(
            update(BookingModel)
            .where(BookingModel.booking_reference == booking.booking_reference)
            .values(
                status=booking.status.value,
                payment_status=booking.payment_status.value,
                transaction_id=booking.transaction_id,
                paid_at=booking.paid_at,
                refund_id=booking.refund_id,
                refunded_at=booking.refunded_at,
                cancelled_at=booking.cancelled_at,
                updated_at=booking.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        updated = await self.get(booking_reference=booking.booking_reference)
        assert updated is not None
        return updated

    @Logger.io
    async def list_by_user(
        self,
        *,
        user_id: int,
        status: Optional[BookingStatus],
        offset: int,
        limit: int,
    ) -> tuple[list[Booking], int]:
        conditions = [BookingModel.user_id == user_id]
        if status is not None:
            conditions.append(BookingModel.status == status.value)

        total = await self.session.scalar(
            select(func.count()).select_from(BookingModel).where(*conditions)
        )
        result = await self.session.execute(
            select(BookingModel)
            .where(*conditions)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._model_to_entity(model) for model in result.scalars().all()], int(total or 0)

    @staticmethod
    def _model_to_entity(model: BookingModel) -> Booking:
        return Booking(
            booking_reference=model.booking_reference,
            user_id=model.user_id,
            showtime_id=model.showtime_id,
            seats=tuple(
                BookedSeat(
                    seat_id=SeatId.from_str(seat['seat_id']),
                    seat_type=SeatType(seat['seat_type']),
                    price=seat['price'],
                )
                for seat in model.seats
            ),
            total_amount=model.total_amount,
            payment_method=PaymentMethod(model.payment_method),
            status=BookingStatus(model.status),
            payment_status=PaymentStatus(model.payment_status),
            transaction_id=model.transaction_id,
            paid_at=as_utc(model.paid_at),
            refund_id=model.refund_id,
            refunded_at=as_utc(model.refunded_at),
            cancelled_at=as_utc(model.cancelled_at),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )
