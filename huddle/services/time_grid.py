"""Fixed weekly grid of addressable meeting slots.

The grid spans Monday to Friday, 09:00 to 23:00 inclusive, in 30-minute
buckets: 29 buckets per day, 145 slots in total. A slot id is the string
``"<dayIndex>-<hour>-<minute>"``, for example ``"0-9-30"`` for Monday 09:30.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

from .errors import InvalidSlotError

DAY_NAMES: Tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri")
FIRST_HOUR = 9
LAST_HOUR = 23
MINUTE_BUCKETS: Tuple[int, ...] = (0, 30)
SLOTS_PER_DAY = (LAST_HOUR - FIRST_HOUR) * len(MINUTE_BUCKETS) + 1
SLOT_COUNT = SLOTS_PER_DAY * len(DAY_NAMES)


@dataclass(frozen=True)
class Slot:
    day_index: int
    hour: int
    minute: int

    @property
    def slot_id(self) -> str:
        return f"{self.day_index}-{self.hour}-{self.minute}"

    @property
    def label(self) -> str:
        return f"{DAY_NAMES[self.day_index]} {self.hour:02d}:{self.minute:02d}"


class _SlotSequence:
    """Restartable, finite view over the grid in row-major (day, then time) order."""

    def __iter__(self) -> Iterator[str]:
        for slot in iter_slots():
            yield slot.slot_id

    def __len__(self) -> int:
        return SLOT_COUNT

    def __contains__(self, slot_id: object) -> bool:
        return isinstance(slot_id, str) and is_valid_slot(slot_id)


def iter_slots() -> Iterator[Slot]:
    for day_index in range(len(DAY_NAMES)):
        for hour in range(FIRST_HOUR, LAST_HOUR + 1):
            for minute in MINUTE_BUCKETS:
                if hour == LAST_HOUR and minute > 0:
                    continue
                yield Slot(day_index, hour, minute)


def all_slots() -> _SlotSequence:
    return _SlotSequence()


def parse_slot(slot_id: str) -> Optional[Slot]:
    """Return the slot addressed by ``slot_id`` or ``None`` when it is not on the grid."""
    if not isinstance(slot_id, str):
        return None
    parts = slot_id.split("-")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    # Reject non-canonical spellings such as "0-09-0" so ids stay stable keys.
    if any(part != str(int(part)) for part in parts):
        return None
    day_index, hour, minute = (int(part) for part in parts)
    if not 0 <= day_index < len(DAY_NAMES):
        return None
    if not FIRST_HOUR <= hour <= LAST_HOUR or minute not in MINUTE_BUCKETS:
        return None
    if hour == LAST_HOUR and minute > 0:
        return None
    return Slot(day_index, hour, minute)


def is_valid_slot(slot_id: str) -> bool:
    return parse_slot(slot_id) is not None


def slot_index(slot_id: str) -> int:
    """Position of ``slot_id`` in grid order."""
    slot = require_slot(slot_id)
    offset = (slot.hour - FIRST_HOUR) * len(MINUTE_BUCKETS) + MINUTE_BUCKETS.index(
        slot.minute
    )
    return slot.day_index * SLOTS_PER_DAY + offset


def require_slot(slot_id: str) -> Slot:
    slot = parse_slot(slot_id)
    if slot is None:
        raise InvalidSlotError(f"Unknown time slot: {slot_id!r}")
    return slot


def require_slots(slot_ids: Iterable[str]) -> frozenset[str]:
    """Validate every id and return them as a frozen set."""
    validated = set()
    for slot_id in slot_ids:
        validated.add(require_slot(slot_id).slot_id)
    return frozenset(validated)
