"""Commit path between the meeting aggregate and its store.

Each mutation loads the latest snapshot, runs the aggregate on it and
commits with compare-and-swap. A stale commit is retried from a fresh load;
a rejected operation never reaches the store. Availability submissions are
written per user so concurrent submissions from different users never
conflict. Snapshots are published only after the commit succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..config.loader import get_coordination_settings
from ..schemas.meeting import DensityClass, Meeting
from ..utils.snapshot_hub import SnapshotHub, snapshot_hub
from .errors import (
    ConcurrentModificationError,
    MeetingNotFoundError,
    StaleSnapshotError,
)
from .meeting_aggregate import MeetingAggregate, OperationResult
from .meeting_store import MeetingStore

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

# Operations whose outcome is written to the audit log.
_AUDITED_OPERATIONS = {
    "decide_join_request",
    "remove_announcement",
    "start_attendance",
    "end_attendance",
    "set_recruitment_status",
}


class MeetingCoordinator:
    def __init__(
        self,
        store: MeetingStore,
        *,
        aggregate: Optional[MeetingAggregate] = None,
        hub: Optional[SnapshotHub] = None,
        max_commit_retries: Optional[int] = None,
    ) -> None:
        self.store = store
        self.aggregate = aggregate or MeetingAggregate()
        self.hub = hub if hub is not None else snapshot_hub
        if max_commit_retries is None:
            max_commit_retries = get_coordination_settings()["max_commit_retries"]
        self.max_commit_retries = max(1, int(max_commit_retries))

    # Loading

    def get_meeting(self, meeting_id: str) -> Meeting:
        loaded = self.store.load(meeting_id)
        if loaded is None:
            raise MeetingNotFoundError()
        return loaded[1]

    def create_meeting(self, owner_id: str, **fields: Any) -> Meeting:
        meeting = self.aggregate.create_meeting(owner_id, **fields)
        version = self.store.create(meeting)
        logger.info("Created meeting %s owned by %s", meeting.id, owner_id)
        self._publish(meeting, version)
        return meeting

    # Commit path

    def execute(
        self, meeting_id: str, operation: str, actor_id: str, **arguments: Any
    ) -> OperationResult:
        if operation == "submit_availability":
            return self._execute_availability(meeting_id, actor_id, **arguments)

        for attempt in range(1, self.max_commit_retries + 1):
            loaded = self.store.load(meeting_id)
            version, meeting = loaded if loaded is not None else (0, None)
            result = self.aggregate.apply(meeting, operation, actor_id, **arguments)
            if not result.changed:
                return result
            try:
                new_version = self.store.compare_and_swap(
                    meeting_id, version, result.meeting
                )
            except StaleSnapshotError:
                logger.info(
                    "Stale snapshot for %s on meeting_id=%s (attempt %s/%s); retrying",
                    operation,
                    meeting_id,
                    attempt,
                    self.max_commit_retries,
                )
                continue
            self._audit(operation, actor_id, result, arguments)
            self._publish(result.meeting, new_version)
            return result

        logger.warning(
            "Giving up on %s for meeting_id=%s after %s stale commits",
            operation,
            meeting_id,
            self.max_commit_retries,
        )
        raise ConcurrentModificationError()

    def _execute_availability(
        self, meeting_id: str, actor_id: str, *, slot_ids: Iterable[str]
    ) -> OperationResult:
        loaded = self.store.load(meeting_id)
        meeting = loaded[1] if loaded is not None else None
        result = self.aggregate.apply(
            meeting, "submit_availability", actor_id, slot_ids=slot_ids
        )
        if not result.changed:
            return result
        self.store.write_availability(
            meeting_id, actor_id, result.meeting.availability[actor_id]
        )
        # Reload so the published snapshot includes other users' concurrent writes.
        latest = self.store.load(meeting_id)
        if latest is None:
            raise MeetingNotFoundError()
        version, committed = latest
        self._publish(committed, version)
        return OperationResult(meeting=committed, changed=True)

    def _publish(self, meeting: Meeting, version: int) -> None:
        self.hub.publish(meeting.id, version, meeting.to_payload())

    def _audit(
        self,
        operation: str,
        actor_id: str,
        result: OperationResult,
        arguments: Dict[str, Any],
    ) -> None:
        if operation not in _AUDITED_OPERATIONS:
            return
        details = {
            "operation": operation,
            "meeting": result.meeting.id,
            "actor": actor_id,
        }
        for key in ("user_id", "decision", "announcement_id", "status"):
            if key in arguments:
                details[key] = str(getattr(arguments[key], "value", arguments[key]))
        audit_logger.info("Meeting action: %s", details)

    # Mutations

    def request_join(
        self,
        meeting_id: str,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Meeting:
        return self.execute(
            meeting_id,
            "request_join",
            user_id,
            display_name=display_name,
            email=email,
        ).meeting

    def cancel_join(self, meeting_id: str, actor_id: str, user_id: Optional[str] = None) -> Meeting:
        return self.execute(
            meeting_id, "cancel_join", actor_id, user_id=user_id or actor_id
        ).meeting

    def decide_join_request(
        self, meeting_id: str, actor_id: str, user_id: str, decision: str
    ) -> Meeting:
        return self.execute(
            meeting_id,
            "decide_join_request",
            actor_id,
            user_id=user_id,
            decision=decision,
        ).meeting

    def set_recruitment_status(self, meeting_id: str, actor_id: str, status: str) -> Meeting:
        return self.execute(
            meeting_id, "set_recruitment_status", actor_id, status=status
        ).meeting

    def submit_availability(
        self, meeting_id: str, user_id: str, slot_ids: Iterable[str]
    ) -> Meeting:
        return self.execute(
            meeting_id, "submit_availability", user_id, slot_ids=list(slot_ids)
        ).meeting

    def add_announcement(
        self,
        meeting_id: str,
        author_id: str,
        *,
        title: str,
        content: str,
        priority: str = "normal",
    ) -> Meeting:
        return self.execute(
            meeting_id,
            "add_announcement",
            author_id,
            title=title,
            content=content,
            priority=priority,
        ).meeting

    def remove_announcement(
        self, meeting_id: str, actor_id: str, announcement_id: str
    ) -> Meeting:
        return self.execute(
            meeting_id,
            "remove_announcement",
            actor_id,
            announcement_id=announcement_id,
        ).meeting

    def start_attendance(self, meeting_id: str, actor_id: str) -> OperationResult:
        return self.execute(meeting_id, "start_attendance", actor_id)

    def end_attendance(self, meeting_id: str, actor_id: str) -> Meeting:
        return self.execute(meeting_id, "end_attendance", actor_id).meeting

    def submit_attendance_code(self, meeting_id: str, user_id: str, code: str) -> Meeting:
        return self.execute(
            meeting_id, "submit_attendance_code", user_id, code=code
        ).meeting

    # Read projections

    def participant_count(self, meeting_id: str, slot_id: str) -> int:
        return self.aggregate.participant_count(self.get_meeting(meeting_id), slot_id)

    def density_class(self, meeting_id: str, slot_id: str) -> DensityClass:
        return self.aggregate.density_class(self.get_meeting(meeting_id), slot_id)

    def participation_rate(self, meeting_id: str) -> int:
        return self.aggregate.participation_rate(self.get_meeting(meeting_id))

    def availability_grid(self, meeting_id: str) -> List[Dict[str, Any]]:
        return self.aggregate.availability_grid(self.get_meeting(meeting_id))

    def suggest_meeting_times(
        self,
        meeting_id: str,
        *,
        min_rate: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return self.aggregate.suggest_meeting_times(
            self.get_meeting(meeting_id), min_rate=min_rate, limit=limit
        )

    def attendance_status(self, meeting_id: str) -> Dict[str, Any]:
        return self.aggregate.attendance_status(self.get_meeting(meeting_id))

    def attendance_history(self, meeting_id: str) -> List[Dict[str, Any]]:
        return self.aggregate.attendance_history(self.get_meeting(meeting_id))

    def attendance_statistics(self, meeting_id: str) -> Dict[str, int]:
        return self.aggregate.attendance_statistics(self.get_meeting(meeting_id))

    def member_attendance_rates(self, meeting_id: str) -> List[Dict[str, Any]]:
        return self.aggregate.member_attendance_rates(self.get_meeting(meeting_id))
