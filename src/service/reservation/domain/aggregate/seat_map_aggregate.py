"""
Seat Map Aggregate

The authoritative per-showtime seat availability record. All state changes go
through apply_transition, a compare-and-swap that only succeeds when the seat
is currently in the expected state. A failed precondition is reported as
TransitionOutcome.CONFLICT, never raised.
"""

from typing import Iterable, Optional

import attrs

from src.platform.exception.exceptions import NotFoundError
from src.service.reservation.domain.enum import SeatState, SeatType, TransitionOutcome
from src.service.reservation.domain.enum.seat_state import LEGAL_TRANSITIONS
from src.service.reservation.domain.value_object.seat_id import SeatId


class IllegalSeatTransition(Exception):
    """Raised when code asks for a transition outside the seat state machine."""


@attrs.define
class Seat:
    seat_id: SeatId
    seat_type: SeatType
    price: int
    state: SeatState = SeatState.FREE
    owner_id: Optional[str] = None  # hold_id while HELD, booking_reference while BOOKED


@attrs.define(frozen=True)
class SeatChange:
    """A changed seat with the state and owner it had when the map was loaded."""

    seat: Seat
    expected_state: SeatState
    expected_owner_id: Optional[str]


@attrs.define
class SeatMap:
    showtime_id: str
    seats: dict[SeatId, Seat]
    _originals: dict[SeatId, tuple[SeatState, Optional[str]]] = attrs.field(
        factory=dict, init=False, repr=False
    )

    @classmethod
    def create(cls, *, showtime_id: str, seats: Iterable[Seat]) -> 'SeatMap':
        return cls(showtime_id=showtime_id, seats={seat.seat_id: seat for seat in seats})

    def get_seat(self, seat_id: SeatId) -> Seat:
        try:
            return self.seats[seat_id]
        except KeyError:
            raise NotFoundError(f'Seat {seat_id} does not exist in showtime {self.showtime_id}')

    def get_state(self, seat_id: SeatId) -> SeatState:
        return self.get_seat(seat_id).state

    def apply_transition(
        self,
        seat_id: SeatId,
        *,
        expected_state: SeatState,
        new_state: SeatState,
        owner_id: Optional[str] = None,
        expected_owner_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Compare-and-swap one seat.

        expected_owner_id narrows the precondition further: a HELD seat only
        matches when it is held by that hold (or booked by that booking).
        """
        if (expected_state, new_state) not in LEGAL_TRANSITIONS:
            raise IllegalSeatTransition(f'{expected_state} -> {new_state} is not a legal transition')

        seat = self.get_seat(seat_id)
        if seat.state != expected_state:
            return TransitionOutcome.CONFLICT
        if expected_owner_id is not None and seat.owner_id != expected_owner_id:
            return TransitionOutcome.CONFLICT

        self._originals.setdefault(seat_id, (seat.state, seat.owner_id))
        seat.state = new_state
        seat.owner_id = None if new_state == SeatState.FREE else owner_id
        return TransitionOutcome.SUCCESS

    def changed_seats(self) -> list[Seat]:
        return [self.seats[seat_id] for seat_id in sorted(self._originals)]

    def pending_changes(self) -> list[SeatChange]:
        """Changed seats paired with their loaded state, for a conditional write."""
        return [
            SeatChange(
                seat=self.seats[seat_id],
                expected_state=self._originals[seat_id][0],
                expected_owner_id=self._originals[seat_id][1],
            )
            for seat_id in sorted(self._originals)
        ]

    def clear_changes(self) -> None:
        self._originals.clear()

    def seats_owned_by(self, owner_id: str) -> list[Seat]:
        return [seat for seat in self.seats.values() if seat.owner_id == owner_id]

    def count(self, state: SeatState) -> int:
        return sum(1 for seat in self.seats.values() if seat.state == state)

    def ordered_seats(self) -> list[Seat]:
        return [self.seats[seat_id] for seat_id in sorted(self.seats)]
