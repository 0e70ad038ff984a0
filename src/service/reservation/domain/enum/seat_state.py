"""Seat State Enum"""

from enum import StrEnum


class SeatState(StrEnum):
    FREE = 'free'
    HELD = 'held'
    BOOKED = 'booked'


class TransitionOutcome(StrEnum):
    SUCCESS = 'success'
    CONFLICT = 'conflict'


# Free -(hold)-> Held -(confirm)-> Booked -(cancel)-> Free, Held -(release|expire)-> Free
LEGAL_TRANSITIONS: frozenset[tuple[SeatState, SeatState]] = frozenset(
    {
        (SeatState.FREE, SeatState.HELD),
        (SeatState.HELD, SeatState.FREE),
        (SeatState.HELD, SeatState.BOOKED),
        (SeatState.BOOKED, SeatState.FREE),
    }
)
