from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.platform.database.db_setting import Base


if TYPE_CHECKING:
    from src.service.reservation.driven_adapter.model.showtime_model import ShowtimeModel


class SeatModel(Base):
    __tablename__ = 'seat'

    showtime_id: Mapped[str] = mapped_column(
        String(36), ForeignKey('showtime.id', ondelete='CASCADE'), primary_key=True
    )
    seat_id: Mapped[str] = mapped_column(String(8), primary_key=True)  # e.g. "A1"
    row: Mapped[str] = mapped_column(String(2), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_type: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(10), default='free', nullable=False)
    # hold id while held, booking reference while booked
    owner_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    showtime: Mapped['ShowtimeModel'] = relationship('ShowtimeModel', back_populates='seats')
