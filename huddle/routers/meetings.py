import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from huddle.data.meeting_store import SqlMeetingStore
from huddle.database import get_db
from huddle.schemas.meeting import (
    AnnouncementCreate,
    AttendanceCodeSubmission,
    AvailabilitySubmission,
    JoinDecisionRequest,
    JoinRequest,
    Meeting,
    MeetingCreate,
    RecruitmentStatusUpdate,
)
from huddle.services.coordinator import MeetingCoordinator
from huddle.services.meeting_aggregate import MeetingAggregate
from huddle.utils.snapshot_hub import snapshot_hub

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])

_aggregate: Optional[MeetingAggregate] = None


def get_aggregate() -> MeetingAggregate:
    global _aggregate
    if _aggregate is None:
        _aggregate = MeetingAggregate()
    return _aggregate


def get_coordinator(
    db: Session = Depends(get_db),
    aggregate: MeetingAggregate = Depends(get_aggregate),
) -> MeetingCoordinator:
    return MeetingCoordinator(SqlMeetingStore(db), aggregate=aggregate, hub=snapshot_hub)


def get_actor_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated user id, supplied by the fronting auth layer."""
    actor_id = (x_user_id or "").strip()
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header"
        )
    return actor_id


def _meeting_view(meeting: Meeting, actor_id: str) -> Dict[str, Any]:
    payload = meeting.to_payload()
    session = payload.get("attendanceSession")
    # Only the owner sees the live code.
    if session and actor_id != meeting.owner_id:
        session["code"] = None
    return payload


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_meeting(
    payload: MeetingCreate,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.create_meeting(
        actor_id,
        title=payload.title,
        description=payload.description,
        max_participants=payload.max_participants,
        location=payload.location,
        display_name=payload.display_name,
        email=payload.email,
    )
    return _meeting_view(meeting, actor_id)


@router.get("/{meeting_id}")
async def get_meeting(
    meeting_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    return _meeting_view(coordinator.get_meeting(meeting_id), actor_id)


# Membership


@router.post("/{meeting_id}/join")
async def request_join(
    meeting_id: str,
    payload: JoinRequest,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.request_join(
        meeting_id,
        actor_id,
        display_name=payload.display_name,
        email=payload.email,
    )
    return _meeting_view(meeting, actor_id)


@router.delete("/{meeting_id}/join")
async def cancel_join(
    meeting_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.cancel_join(meeting_id, actor_id)
    return _meeting_view(meeting, actor_id)


@router.post("/{meeting_id}/requests/{user_id}")
async def decide_join_request(
    meeting_id: str,
    user_id: str,
    payload: JoinDecisionRequest,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.decide_join_request(
        meeting_id, actor_id, user_id, payload.action.value
    )
    return _meeting_view(meeting, actor_id)


@router.put("/{meeting_id}/recruitment")
async def set_recruitment_status(
    meeting_id: str,
    payload: RecruitmentStatusUpdate,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.set_recruitment_status(meeting_id, actor_id, payload.status)
    return _meeting_view(meeting, actor_id)


# Availability


@router.put("/{meeting_id}/availability")
async def submit_availability(
    meeting_id: str,
    payload: AvailabilitySubmission,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.submit_availability(meeting_id, actor_id, payload.slot_ids)
    return _meeting_view(meeting, actor_id)


@router.get("/{meeting_id}/availability")
async def availability_overview(
    meeting_id: str,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.get_meeting(meeting_id)
    aggregate = coordinator.aggregate
    return {
        "meetingId": meeting.id,
        "totalParticipants": meeting.approved_participant_count,
        "participationRate": aggregate.participation_rate(meeting),
        "slots": aggregate.availability_grid(meeting),
    }


@router.get("/{meeting_id}/availability/{slot_id}")
async def slot_availability(
    meeting_id: str,
    slot_id: str,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.get_meeting(meeting_id)
    aggregate = coordinator.aggregate
    return {
        "slotId": slot_id,
        "count": aggregate.participant_count(meeting, slot_id),
        "densityClass": aggregate.density_class(meeting, slot_id).value,
        "totalParticipants": meeting.approved_participant_count,
    }


@router.get("/{meeting_id}/suggestions")
async def suggest_meeting_times(
    meeting_id: str,
    min_rate: Optional[int] = Query(None, ge=0, le=100),
    limit: Optional[int] = Query(None, ge=1, le=145),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    return coordinator.suggest_meeting_times(meeting_id, min_rate=min_rate, limit=limit)


# Announcements


@router.post("/{meeting_id}/announcements", status_code=status.HTTP_201_CREATED)
async def add_announcement(
    meeting_id: str,
    payload: AnnouncementCreate,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.add_announcement(
        meeting_id,
        actor_id,
        title=payload.title,
        content=payload.content,
        priority=payload.priority.value,
    )
    return _meeting_view(meeting, actor_id)


@router.delete("/{meeting_id}/announcements/{announcement_id}")
async def remove_announcement(
    meeting_id: str,
    announcement_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.remove_announcement(meeting_id, actor_id, announcement_id)
    return _meeting_view(meeting, actor_id)


# Attendance


@router.post("/{meeting_id}/attendance/start")
async def start_attendance(
    meeting_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    result = coordinator.start_attendance(meeting_id, actor_id)
    return {
        "code": result.code,
        "status": coordinator.aggregate.attendance_status(result.meeting),
    }


@router.post("/{meeting_id}/attendance/end")
async def end_attendance(
    meeting_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.end_attendance(meeting_id, actor_id)
    return coordinator.aggregate.attendance_status(meeting)


@router.post("/{meeting_id}/attendance/check-in")
async def submit_attendance_code(
    meeting_id: str,
    payload: AttendanceCodeSubmission,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.submit_attendance_code(meeting_id, actor_id, payload.code)
    current = coordinator.aggregate.attendance_status(meeting)
    current["code"] = None
    return current


@router.get("/{meeting_id}/attendance")
async def attendance_status(
    meeting_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    meeting = coordinator.get_meeting(meeting_id)
    current = coordinator.aggregate.attendance_status(meeting)
    if actor_id != meeting.owner_id:
        current["code"] = None
    return current


@router.get("/{meeting_id}/attendance/history")
async def attendance_history(
    meeting_id: str,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    return coordinator.attendance_history(meeting_id)


@router.get("/{meeting_id}/attendance/statistics")
async def attendance_statistics(
    meeting_id: str,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    return coordinator.attendance_statistics(meeting_id)


@router.get("/{meeting_id}/attendance/members")
async def member_attendance_rates(
    meeting_id: str,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    return coordinator.member_attendance_rates(meeting_id)
