"""Typed failures raised by the meeting coordination core.

Every error is a local validation or authorization failure; none of them
leave a partially mutated meeting behind. ``code`` is a stable identifier
for callers and ``status_code`` is the HTTP status used by the API adapter.
"""

from __future__ import annotations

from typing import Optional


class MeetingCoordinationError(Exception):
    """Base class for all coordination core failures."""

    code = "coordination_error"
    status_code = 400
    default_message = "Meeting operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotAuthorizedError(MeetingCoordinationError):
    code = "not_authorized"
    status_code = 403
    default_message = "You are not allowed to perform this action"


class InvalidStateTransitionError(MeetingCoordinationError):
    code = "invalid_state_transition"
    status_code = 409
    default_message = "The requested transition is not allowed from the current state"


class AlreadyRequestedError(MeetingCoordinationError):
    code = "already_requested"
    status_code = 409
    default_message = "User already has a membership entry for this meeting"


class MeetingFullError(MeetingCoordinationError):
    code = "meeting_full"
    status_code = 409
    default_message = "Meeting has reached its participant limit"


class MeetingClosedError(MeetingCoordinationError):
    code = "meeting_closed"
    status_code = 409
    default_message = "Meeting is not accepting join requests"


class SessionAlreadyActiveError(MeetingCoordinationError):
    code = "session_already_active"
    status_code = 409
    default_message = "An attendance session is already running"


class SessionExpiredError(MeetingCoordinationError):
    code = "session_expired"
    status_code = 410
    default_message = "The attendance session has expired"


class NoActiveSessionError(MeetingCoordinationError):
    code = "no_active_session"
    status_code = 409
    default_message = "No attendance session is running"


class InvalidCodeError(MeetingCoordinationError):
    code = "invalid_code"
    status_code = 422
    default_message = "Attendance code does not match"


class InvalidSlotError(MeetingCoordinationError):
    code = "invalid_slot"
    status_code = 422
    default_message = "Unknown time slot"


class ValidationError(MeetingCoordinationError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid input"


class MeetingNotFoundError(MeetingCoordinationError):
    code = "meeting_not_found"
    status_code = 404
    default_message = "Meeting not found"


class NotFoundError(MeetingCoordinationError):
    code = "not_found"
    status_code = 404
    default_message = "Requested item not found"


class StaleSnapshotError(MeetingCoordinationError):
    """Raised by a store when a conditional write lost against a newer version."""

    code = "stale_snapshot"
    status_code = 409
    default_message = "Meeting changed since it was read"


class ConcurrentModificationError(MeetingCoordinationError):
    code = "concurrent_modification"
    status_code = 409
    default_message = "Meeting is being modified concurrently; retry later"
