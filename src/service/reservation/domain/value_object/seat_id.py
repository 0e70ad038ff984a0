"""
Seat Id Value Object

A seat is addressed by its row letter(s) and its number within the row,
rendered as e.g. "A1" or "AA12".
"""

import re

import attrs

from src.platform.exception.exceptions import DomainError


_SEAT_ID_PATTERN = re.compile(r'^([A-Z]{1,2})(\d{1,3})$')


def _row_to_index(row: str) -> int:
    index = 0
    for char in row:
        index = index * 26 + (ord(char) - ord('A') + 1)
    return index


@attrs.define(frozen=True, order=False)
class SeatId:
    """Seat identifier (Value Object)"""

    row: str
    number: int

    def __str__(self) -> str:
        return f'{self.row}{self.number}'

    @property
    def sort_key(self) -> tuple[int, int]:
        return _row_to_index(self.row), self.number

    def __lt__(self, other: 'SeatId') -> bool:
        return self.sort_key < other.sort_key

    @classmethod
    def from_str(cls, seat_id: str) -> 'SeatId':
        """Create seat id from its string form"""
        match = _SEAT_ID_PATTERN.match(seat_id.strip().upper()) if isinstance(seat_id, str) else None
        if not match or int(match.group(2)) < 1:
            raise DomainError(f'Invalid seat id: {seat_id!r}. Expected row letters + number, e.g. A1')
        return cls(row=match.group(1), number=int(match.group(2)))

    @classmethod
    def parse_many(cls, seat_ids: list[str]) -> list['SeatId']:
        parsed = [cls.from_str(seat_id) for seat_id in seat_ids]
        if len(set(parsed)) != len(parsed):
            raise DomainError('Duplicate seat ids in request')
        return parsed
