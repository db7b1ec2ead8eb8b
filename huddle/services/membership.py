"""Join-request state machine for meeting participants.

``owner`` is assigned once, at meeting creation, and is never entered or
left through a transition. Everyone else moves ``(absent) -> pending`` by
requesting, ``pending -> (absent)`` by cancelling their own request, and
``pending -> approved | rejected`` by the owner's decision. Rejected entries
are retained for audit, so a rejected user cannot request again.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from ..schemas.meeting import (
    JoinDecision,
    Meeting,
    Participant,
    ParticipantStatus,
    RecruitmentStatus,
)
from .errors import (
    AlreadyRequestedError,
    InvalidStateTransitionError,
    MeetingClosedError,
    MeetingFullError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)


def is_owner(meeting: Meeting, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return meeting.owner_id == user_id


def is_approved_participant(meeting: Meeting, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    participant = meeting.participant(user_id)
    return participant is not None and participant.is_approved


def is_at_capacity(meeting: Meeting) -> bool:
    if meeting.max_participants is None:
        return False
    return meeting.approved_participant_count >= meeting.max_participants


def require_owner(meeting: Meeting, actor_id: Optional[str], action: str) -> None:
    if not is_owner(meeting, actor_id):
        raise NotAuthorizedError(f"Only the meeting owner can {action}")


def require_approved(meeting: Meeting, user_id: Optional[str], action: str) -> None:
    if not is_approved_participant(meeting, user_id):
        raise NotAuthorizedError(f"Only approved participants can {action}")


def request_join(
    meeting: Meeting,
    user_id: str,
    *,
    now: datetime,
    display_name: Optional[str] = None,
    email: Optional[str] = None,
) -> Meeting:
    if not user_id:
        raise ValidationError("A user id is required to join a meeting")

    existing = meeting.participant(user_id)
    if existing is not None:
        if existing.is_approved:
            raise AlreadyRequestedError("You are already a participant of this meeting")
        if existing.status == ParticipantStatus.PENDING:
            raise AlreadyRequestedError("You already have a pending join request")
        raise AlreadyRequestedError("Your join request was already decided")

    if meeting.recruitment_status == RecruitmentStatus.CLOSED:
        raise MeetingClosedError()
    if meeting.recruitment_status == RecruitmentStatus.FULL or is_at_capacity(meeting):
        raise MeetingFullError()

    request = Participant(
        user_id=user_id,
        status=ParticipantStatus.PENDING,
        joined_at=now,
        display_name=display_name,
        email=email,
    )
    return meeting.model_copy(update={"participants": meeting.participants + (request,)})


def cancel_join(meeting: Meeting, actor_id: str, user_id: str) -> Meeting:
    """Withdraw a pending request; only the requester may do this."""
    if not actor_id or actor_id != user_id:
        raise NotAuthorizedError("You can only cancel your own join request")

    existing = meeting.participant(user_id)
    if existing is None:
        raise NotFoundError("No join request found for this user")
    if existing.status != ParticipantStatus.PENDING:
        raise InvalidStateTransitionError(
            f"Cannot cancel a request that is {existing.status.value}"
        )

    remaining = tuple(p for p in meeting.participants if p.user_id != user_id)
    return meeting.model_copy(update={"participants": remaining})


def decide_join_request(
    meeting: Meeting,
    actor_id: str,
    user_id: str,
    decision: Union[JoinDecision, str],
    *,
    now: datetime,
) -> Meeting:
    require_owner(meeting, actor_id, "decide join requests")

    try:
        decision = JoinDecision(decision)
    except ValueError as exc:
        raise ValidationError(f"Unknown decision: {decision!r}") from exc

    existing = meeting.participant(user_id)
    if existing is None:
        raise NotFoundError("No join request found for this user")
    if existing.status != ParticipantStatus.PENDING:
        raise InvalidStateTransitionError(
            f"Request is {existing.status.value}, not pending"
        )

    if decision == JoinDecision.APPROVE:
        # Checked again here: approvals may race with earlier ones.
        if is_at_capacity(meeting):
            raise MeetingFullError()
        new_status = ParticipantStatus.APPROVED
    else:
        new_status = ParticipantStatus.REJECTED

    decided = existing.model_copy(update={"status": new_status, "decided_at": now})
    participants = tuple(
        decided if p.user_id == user_id else p for p in meeting.participants
    )
    return meeting.model_copy(update={"participants": participants})


def set_recruitment_status(
    meeting: Meeting,
    actor_id: str,
    status: Union[RecruitmentStatus, str],
) -> Meeting:
    require_owner(meeting, actor_id, "change the recruitment status")
    try:
        status = RecruitmentStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown recruitment status: {status!r}") from exc
    if status == meeting.recruitment_status:
        return meeting
    return meeting.model_copy(update={"recruitment_status": status})
