"""Consistency boundary for one meeting.

``MeetingAggregate`` routes a named operation to the component that owns it
and returns a new ``Meeting``. It holds no meeting state of its own; the
clock and the attendance-code source are injected so callers and tests
control time and randomness.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Dict, List, Optional

from ..config.loader import get_attendance_settings, get_suggestion_settings
from ..schemas.meeting import (
    DensityClass,
    Meeting,
    Participant,
    ParticipantStatus,
)
from ..utils.identifiers import attendance_code_factory, generate_meeting_id
from . import announcements, attendance, availability, membership
from .errors import MeetingNotFoundError, ValidationError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class OperationResult:
    meeting: Meeting
    changed: bool
    code: Optional[str] = None


class MeetingAggregate:
    MUTATIONS = (
        "request_join",
        "cancel_join",
        "decide_join_request",
        "submit_availability",
        "add_announcement",
        "remove_announcement",
        "start_attendance",
        "end_attendance",
        "submit_attendance_code",
        "set_recruitment_status",
    )

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        code_factory: Optional[Callable[[], str]] = None,
        window_seconds: Optional[int] = None,
    ) -> None:
        settings = get_attendance_settings()
        self.clock = clock or _utc_now
        self.code_factory = code_factory or attendance_code_factory(
            settings["code_length"], settings["code_alphabet"]
        )
        self.window_seconds = int(window_seconds or settings["window_seconds"])

    def create_meeting(
        self,
        owner_id: str,
        *,
        title: str,
        description: str,
        max_participants: Optional[int] = None,
        location: Optional[str] = None,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        meeting_id: Optional[str] = None,
    ) -> Meeting:
        if not owner_id:
            raise ValidationError("A meeting needs an owner")
        title = (title or "").strip()
        description = (description or "").strip()
        if not title or not description:
            raise ValidationError("Meeting title and description are required")
        if max_participants is not None and int(max_participants) < 1:
            raise ValidationError("max_participants must be at least 1")

        now = self.clock()
        owner = Participant(
            user_id=owner_id,
            status=ParticipantStatus.OWNER,
            joined_at=now,
            display_name=display_name,
            email=email,
        )
        return Meeting(
            id=meeting_id or generate_meeting_id(),
            title=title,
            description=description,
            owner_id=owner_id,
            max_participants=max_participants,
            location=(location or "").strip() or None,
            created_at=now,
            participants=(owner,),
        )

    def apply(
        self,
        meeting: Optional[Meeting],
        operation: str,
        actor_id: str,
        **arguments: Any,
    ) -> OperationResult:
        """Run one mutation; either the full new meeting comes back or an error is raised."""
        meeting = self._require(meeting)
        if operation not in self.MUTATIONS:
            raise ValidationError(f"Unknown operation: {operation!r}")
        handler = getattr(self, f"_{operation}")
        try:
            inspect.signature(handler).bind(meeting, actor_id, **arguments)
        except TypeError as exc:
            raise ValidationError(f"Invalid arguments for {operation}: {exc}") from exc
        code = None
        outcome = handler(meeting, actor_id, **arguments)
        if isinstance(outcome, tuple):
            outcome, code = outcome
        logger.debug(
            "Applied %s on meeting_id=%s actor=%s", operation, meeting.id, actor_id
        )
        return OperationResult(meeting=outcome, changed=outcome is not meeting, code=code)

    @staticmethod
    def _require(meeting: Optional[Meeting]) -> Meeting:
        if meeting is None:
            raise MeetingNotFoundError()
        return meeting

    # Mutations

    def _request_join(
        self,
        meeting: Meeting,
        actor_id: str,
        *,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Meeting:
        return membership.request_join(
            meeting,
            actor_id,
            now=self.clock(),
            display_name=display_name,
            email=email,
        )

    def _cancel_join(
        self, meeting: Meeting, actor_id: str, *, user_id: Optional[str] = None
    ) -> Meeting:
        return membership.cancel_join(meeting, actor_id, user_id or actor_id)

    def _decide_join_request(
        self, meeting: Meeting, actor_id: str, *, user_id: str, decision: str
    ) -> Meeting:
        return membership.decide_join_request(
            meeting, actor_id, user_id, decision, now=self.clock()
        )

    def _submit_availability(
        self, meeting: Meeting, actor_id: str, *, slot_ids
    ) -> Meeting:
        return availability.submit_availability(meeting, actor_id, slot_ids)

    def _add_announcement(
        self,
        meeting: Meeting,
        actor_id: str,
        *,
        title: str,
        content: str,
        priority: str = "normal",
    ) -> Meeting:
        return announcements.add_announcement(
            meeting,
            actor_id,
            title=title,
            content=content,
            priority=priority,
            now=self.clock(),
        )

    def _remove_announcement(
        self, meeting: Meeting, actor_id: str, *, announcement_id: str
    ) -> Meeting:
        return announcements.remove_announcement(meeting, actor_id, announcement_id)

    def _start_attendance(self, meeting: Meeting, actor_id: str):
        return attendance.start_attendance(
            meeting,
            actor_id,
            now=self.clock(),
            code_factory=self.code_factory,
            window_seconds=self.window_seconds,
        )

    def _end_attendance(self, meeting: Meeting, actor_id: str) -> Meeting:
        return attendance.end_attendance(meeting, actor_id, now=self.clock())

    def _submit_attendance_code(
        self, meeting: Meeting, actor_id: str, *, code: str
    ) -> Meeting:
        return attendance.submit_code(meeting, actor_id, code, now=self.clock())

    def _set_recruitment_status(
        self, meeting: Meeting, actor_id: str, *, status: str
    ) -> Meeting:
        return membership.set_recruitment_status(meeting, actor_id, status)

    # Read projections

    def participant_count(self, meeting: Optional[Meeting], slot_id: str) -> int:
        return availability.participant_count(self._require(meeting), slot_id)

    def density_class(self, meeting: Optional[Meeting], slot_id: str) -> DensityClass:
        return availability.density_class(self._require(meeting), slot_id)

    def participation_rate(self, meeting: Optional[Meeting]) -> int:
        return availability.participation_rate(self._require(meeting))

    def availability_grid(self, meeting: Optional[Meeting]) -> List[Dict[str, Any]]:
        return availability.availability_grid(self._require(meeting))

    def suggest_meeting_times(
        self,
        meeting: Optional[Meeting],
        *,
        min_rate: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        settings = get_suggestion_settings()
        return availability.suggest_meeting_times(
            self._require(meeting),
            min_rate=settings["min_rate"] if min_rate is None else min_rate,
            limit=settings["limit"] if limit is None else limit,
        )

    def attendance_status(
        self, meeting: Optional[Meeting], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return attendance.attendance_status(self._require(meeting), now or self.clock())

    def attendance_history(
        self, meeting: Optional[Meeting], now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        return attendance.attendance_history(self._require(meeting), now or self.clock())

    def attendance_statistics(
        self, meeting: Optional[Meeting], now: Optional[datetime] = None
    ) -> Dict[str, int]:
        return attendance.attendance_statistics(
            self._require(meeting), now or self.clock()
        )

    def member_attendance_rates(
        self, meeting: Optional[Meeting], now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        return attendance.member_attendance_rates(
            self._require(meeting), now or self.clock()
        )
