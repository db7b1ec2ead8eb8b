"""Aggregation of per-user availability into a shared heat map.

Each approved participant holds one complete set of slot ids; a submission
replaces that set outright. Counts only consider approved participants (and
the owner), which is also the denominator for every rate.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ..schemas.meeting import DensityClass, Meeting
from . import time_grid
from .membership import require_approved

# Inclusive lower bounds, evaluated top-down.
DENSITY_THRESHOLDS = (
    (0.8, DensityClass.MEDIUM_HIGH),
    (0.6, DensityClass.MEDIUM),
    (0.4, DensityClass.MEDIUM_LOW),
    (0.2, DensityClass.LOW),
)


def submit_availability(
    meeting: Meeting,
    user_id: str,
    slot_ids: Iterable[str],
) -> Meeting:
    require_approved(meeting, user_id, "submit availability")
    slots = time_grid.require_slots(slot_ids)

    if meeting.availability.get(user_id) == slots:
        return meeting
    availability = dict(meeting.availability)
    availability[user_id] = slots
    return meeting.model_copy(update={"availability": availability})


def _counted_sets(meeting: Meeting) -> List[frozenset]:
    return [
        meeting.availability.get(participant.user_id, frozenset())
        for participant in meeting.approved_participants
    ]


def participant_count(meeting: Meeting, slot_id: str) -> int:
    time_grid.require_slot(slot_id)
    return sum(1 for slots in _counted_sets(meeting) if slot_id in slots)


def classify_density(count: int, total: int) -> DensityClass:
    if total <= 0 or count <= 0:
        return DensityClass.NONE
    if count >= total:
        return DensityClass.FULL
    ratio = count / total
    for threshold, density in DENSITY_THRESHOLDS:
        if ratio >= threshold:
            return density
    return DensityClass.VERY_LOW


def density_class(meeting: Meeting, slot_id: str) -> DensityClass:
    count = participant_count(meeting, slot_id)
    return classify_density(count, meeting.approved_participant_count)


def participation_rate(meeting: Meeting) -> int:
    """Percentage of approved participants who have submitted a non-empty set."""
    total = meeting.approved_participant_count
    if total == 0:
        return 0
    submitted = sum(1 for slots in _counted_sets(meeting) if slots)
    return round(submitted / total * 100)


def availability_grid(meeting: Meeting) -> List[Dict[str, Any]]:
    """Full heat map in grid order."""
    total = meeting.approved_participant_count
    counted = _counted_sets(meeting)
    grid = []
    for slot_id in time_grid.all_slots():
        count = sum(1 for slots in counted if slot_id in slots)
        grid.append(
            {
                "slotId": slot_id,
                "count": count,
                "densityClass": classify_density(count, total).value,
            }
        )
    return grid


def suggest_meeting_times(
    meeting: Meeting,
    *,
    min_rate: int = 20,
    limit: int = 20,
) -> List[Dict[str, Any]]:
    """Best-attended slots, highest availability first, ties kept in grid order."""
    total = meeting.approved_participant_count
    if total == 0 or limit <= 0:
        return []

    counted = _counted_sets(meeting)
    candidates = []
    for position, slot in enumerate(time_grid.iter_slots()):
        count = sum(1 for slots in counted if slot.slot_id in slots)
        rate = count / total * 100
        if count == 0 or rate < min_rate:
            continue
        candidates.append(
            (
                -count,
                position,
                {
                    "slotId": slot.slot_id,
                    "dayIndex": slot.day_index,
                    "hour": slot.hour,
                    "minute": slot.minute,
                    "label": slot.label,
                    "availableCount": count,
                    "totalParticipants": total,
                    "availabilityRate": round(rate),
                },
            )
        )
    candidates.sort(key=lambda item: (item[0], item[1]))
    return [entry for _, _, entry in candidates[:limit]]
