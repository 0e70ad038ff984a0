from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from src.platform.database.db_setting import Base


if TYPE_CHECKING:
    from src.service.reservation.driven_adapter.model.seat_model import SeatModel


class ShowtimeModel(Base):
    __tablename__ = 'showtime'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # UUID7
    movie_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    theater_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    prices: Mapped[dict] = mapped_column(JSON, nullable=False)  # {seat_type: price}
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    seats: Mapped[list['SeatModel']] = relationship(
        'SeatModel',
        back_populates='showtime',
        cascade='all, delete-orphan',
        lazy='raise',
    )
