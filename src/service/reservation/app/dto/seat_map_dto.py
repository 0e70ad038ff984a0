from anyio.streams.memory import MemoryObjectReceiveStream
import attrs

from src.service.reservation.domain.aggregate.seat_map_aggregate import SeatMap
from src.service.reservation.domain.domain_event.seat_events import SeatEventEnvelope
from src.service.reservation.domain.entity.showtime_entity import Showtime


@attrs.define(frozen=True)
class SeatMapSnapshot:
    """Seat map as of fan-out sequence `sequence` (events with a higher sequence are newer)."""

    showtime: Showtime
    seat_map: SeatMap
    sequence: int


@attrs.define(frozen=True)
class SeatMapSubscription:
    subscriber_id: str
    snapshot: SeatMapSnapshot
    events: MemoryObjectReceiveStream[SeatEventEnvelope]
