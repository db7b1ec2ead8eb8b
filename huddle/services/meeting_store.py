from __future__ import annotations

import copy
from threading import Lock
from typing import Dict, FrozenSet, Iterable, Optional, Protocol, Tuple

from ..schemas.meeting import JSONCompatibleDict, Meeting
from .errors import MeetingNotFoundError, StaleSnapshotError, ValidationError

Snapshot = Tuple[int, Meeting]


class MeetingStore(Protocol):
    """Versioned persistence for whole meetings.

    Every successful write returns a version strictly greater than the one
    before it. ``compare_and_swap`` replaces the meeting document only when
    the caller's expected version still matches; ``write_availability``
    replaces one user's selection without touching anything else.
    """

    def create(self, meeting: Meeting) -> int: ...

    def load(self, meeting_id: str) -> Optional[Snapshot]: ...

    def compare_and_swap(self, meeting_id: str, expected_version: int, meeting: Meeting) -> int: ...

    def write_availability(
        self, meeting_id: str, user_id: str, slot_ids: Iterable[str]
    ) -> int: ...


class InMemoryMeetingStore:
    """Process-local store used by tests and single-worker deployments."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._documents: Dict[str, JSONCompatibleDict] = {}
        self._availability: Dict[str, Dict[str, FrozenSet[str]]] = {}
        self._versions: Dict[str, int] = {}

    def create(self, meeting: Meeting) -> int:
        with self._lock:
            if meeting.id in self._documents:
                raise ValidationError(f"Meeting {meeting.id} already exists")
            self._documents[meeting.id] = meeting.to_document()
            self._availability[meeting.id] = dict(meeting.availability)
            self._versions[meeting.id] = 1
            return 1

    def load(self, meeting_id: str) -> Optional[Snapshot]:
        with self._lock:
            document = self._documents.get(meeting_id)
            if document is None:
                return None
            meeting = Meeting.from_document(
                copy.deepcopy(document), self._availability.get(meeting_id)
            )
            return self._versions[meeting_id], meeting

    def compare_and_swap(self, meeting_id: str, expected_version: int, meeting: Meeting) -> int:
        with self._lock:
            current = self._versions.get(meeting_id)
            if current is None:
                raise MeetingNotFoundError()
            if current != expected_version:
                raise StaleSnapshotError()
            self._documents[meeting_id] = meeting.to_document()
            # Availability is written per user; keep entries only for users still listed.
            members = {p.user_id for p in meeting.participants}
            self._availability[meeting_id] = {
                user_id: slots
                for user_id, slots in self._availability.get(meeting_id, {}).items()
                if user_id in members
            }
            self._versions[meeting_id] = current + 1
            return current + 1

    def write_availability(
        self, meeting_id: str, user_id: str, slot_ids: Iterable[str]
    ) -> int:
        with self._lock:
            current = self._versions.get(meeting_id)
            if current is None:
                raise MeetingNotFoundError()
            selections = self._availability.setdefault(meeting_id, {})
            selections[user_id] = frozenset(slot_ids)
            self._versions[meeting_id] = current + 1
            return current + 1
