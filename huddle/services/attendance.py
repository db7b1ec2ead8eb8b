"""Time-boxed, code-verified attendance sessions.

A meeting is either idle or has one running session. Expiry is evaluated
lazily from the ``now`` passed to each call, so a session whose window has
passed rejects late codes even when nobody called ``end_attendance``.
Ended and expired sessions are archived into ``attendance_history``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, List, Tuple

from ..schemas.meeting import AttendanceSession, Meeting, ParticipantStatus
from .errors import (
    InvalidCodeError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
    SessionExpiredError,
)
from .membership import require_approved, require_owner

DEFAULT_WINDOW_SECONDS = 180


def _as_utc(now: datetime) -> datetime:
    # Stored session times are UTC-aware; a naive clock reading is taken as UTC.
    return now.replace(tzinfo=UTC) if now.tzinfo is None else now


def _rate(attended: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(attended / total * 100)


def _archived(meeting: Meeting, session: AttendanceSession) -> Tuple[AttendanceSession, ...]:
    return (session,) + meeting.attendance_history


def start_attendance(
    meeting: Meeting,
    actor_id: str,
    *,
    now: datetime,
    code_factory: Callable[[], str],
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> Tuple[Meeting, str]:
    require_owner(meeting, actor_id, "start attendance")
    now = _as_utc(now)

    current = meeting.attendance_session
    if current is not None and current.is_active(now):
        raise SessionAlreadyActiveError()

    history = meeting.attendance_history
    if current is not None:
        # Expired without an explicit end; keep its record.
        history = _archived(meeting, current)

    code = code_factory()
    session = AttendanceSession(
        code=code,
        started_by=actor_id,
        started_at=now,
        expires_at=now + timedelta(seconds=window_seconds),
    )
    updated = meeting.model_copy(
        update={"attendance_session": session, "attendance_history": history}
    )
    return updated, code


def end_attendance(meeting: Meeting, actor_id: str, *, now: datetime) -> Meeting:
    """Stop the current session regardless of remaining time; idempotent when idle."""
    require_owner(meeting, actor_id, "end attendance")
    now = _as_utc(now)

    current = meeting.attendance_session
    if current is None:
        return meeting

    closed = current.model_copy(update={"ended_at": min(now, current.expires_at)})
    return meeting.model_copy(
        update={
            "attendance_session": None,
            "attendance_history": _archived(meeting, closed),
        }
    )


def submit_code(meeting: Meeting, user_id: str, code: str, *, now: datetime) -> Meeting:
    now = _as_utc(now)
    session = meeting.attendance_session
    if session is None or session.ended_at is not None:
        raise NoActiveSessionError()
    if session.is_expired(now):
        raise SessionExpiredError()
    if code != session.code:
        raise InvalidCodeError()
    require_approved(meeting, user_id, "check in")

    if user_id in session.attendees:
        return meeting
    updated_session = session.model_copy(
        update={"attendees": session.attendees | {user_id}}
    )
    return meeting.model_copy(update={"attendance_session": updated_session})


def attendance_status(meeting: Meeting, now: datetime) -> Dict[str, Any]:
    """Read projection of the current session as seen at ``now``."""
    now = _as_utc(now)
    total = meeting.approved_participant_count
    session = meeting.attendance_session
    if session is None:
        return {
            "isActive": False,
            "code": None,
            "attendees": [],
            "attendanceRate": 0,
            "totalParticipants": total,
            "startedAt": None,
            "expiresAt": None,
            "remainingSeconds": 0,
        }

    active = session.is_active(now)
    remaining = max(0, int((session.expires_at - now).total_seconds())) if active else 0
    return {
        "isActive": active,
        "code": session.code if active else None,
        "attendees": sorted(session.attendees),
        "attendanceRate": _rate(len(session.attendees), total),
        "totalParticipants": total,
        "startedAt": session.started_at.isoformat(),
        "expiresAt": session.expires_at.isoformat(),
        "remainingSeconds": remaining,
    }


def _finished_sessions(meeting: Meeting, now: datetime) -> List[AttendanceSession]:
    now = _as_utc(now)
    sessions = list(meeting.attendance_history)
    current = meeting.attendance_session
    if current is not None and not current.is_active(now):
        sessions.insert(0, current)
    return sessions


def attendance_history(meeting: Meeting, now: datetime) -> List[Dict[str, Any]]:
    total = meeting.approved_participant_count
    history = []
    for session in sorted(
        _finished_sessions(meeting, now), key=lambda s: s.started_at, reverse=True
    ):
        entry = session.to_payload()
        entry.pop("code", None)
        entry["attendanceRate"] = _rate(len(session.attendees), total)
        entry["totalParticipants"] = total
        history.append(entry)
    return history


def attendance_statistics(meeting: Meeting, now: datetime) -> Dict[str, int]:
    history = attendance_history(meeting, now)
    if not history:
        return {
            "totalSessions": 0,
            "averageAttendanceRate": 0,
            "bestAttendanceRate": 0,
            "worstAttendanceRate": 0,
            "totalAttendances": 0,
        }
    rates = [entry["attendanceRate"] for entry in history]
    return {
        "totalSessions": len(history),
        "averageAttendanceRate": round(sum(rates) / len(rates)),
        "bestAttendanceRate": max(rates),
        "worstAttendanceRate": min(rates),
        "totalAttendances": sum(len(entry["attendees"]) for entry in history),
    }


def member_attendance_rates(meeting: Meeting, now: datetime) -> List[Dict[str, Any]]:
    sessions = _finished_sessions(meeting, now)
    total_sessions = len(sessions)
    rows = []
    for participant in meeting.approved_participants:
        attended = sum(1 for s in sessions if participant.user_id in s.attendees)
        rows.append(
            {
                "userId": participant.user_id,
                "displayName": participant.display_name or participant.user_id,
                "status": participant.status.value,
                "isOwner": participant.status == ParticipantStatus.OWNER,
                "attendanceCount": attended,
                "totalSessions": total_sessions,
                "attendanceRate": _rate(attended, total_sessions),
            }
        )
    rows.sort(key=lambda row: (-row["attendanceRate"], row["userId"]))
    return rows

