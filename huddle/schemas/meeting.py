from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

JSONCompatibleDict = Dict[str, Any]


class ParticipantStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    OWNER = "owner"


APPROVED_STATUSES = frozenset({ParticipantStatus.APPROVED, ParticipantStatus.OWNER})


class JoinDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class RecruitmentStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    FULL = "full"


class AnnouncementPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class DensityClass(str, Enum):
    NONE = "none"
    VERY_LOW = "very-low"
    LOW = "low"
    MEDIUM_LOW = "medium-low"
    MEDIUM = "medium"
    MEDIUM_HIGH = "medium-high"
    FULL = "full"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Participant(BaseModel):
    user_id: str = Field(..., min_length=1)
    status: ParticipantStatus
    joined_at: datetime
    # Captured when the request is made; not kept in sync with the profile.
    display_name: Optional[str] = None
    email: Optional[str] = None
    decided_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @property
    def is_approved(self) -> bool:
        return self.status in APPROVED_STATUSES

    def to_payload(self) -> JSONCompatibleDict:
        return {
            "userId": self.user_id,
            "status": self.status.value,
            "joinedAt": _iso(self.joined_at),
            "displayName": self.display_name,
            "email": self.email,
            "decidedAt": _iso(self.decided_at),
        }


class Announcement(BaseModel):
    id: str
    title: str
    content: str
    author_id: str
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL
    created_at: datetime

    model_config = {"frozen": True}

    def to_payload(self) -> JSONCompatibleDict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "authorId": self.author_id,
            "priority": self.priority.value,
            "createdAt": _iso(self.created_at),
        }


class AttendanceSession(BaseModel):
    code: str
    started_by: str
    started_at: datetime
    expires_at: datetime
    attendees: FrozenSet[str] = frozenset()
    ended_at: Optional[datetime] = None

    model_config = {"frozen": True}

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        """Active until explicitly ended or until ``now`` reaches ``expires_at``."""
        return self.ended_at is None and not self.is_expired(now)

    def to_payload(self) -> JSONCompatibleDict:
        return {
            "code": self.code,
            "startedBy": self.started_by,
            "startedAt": _iso(self.started_at),
            "expiresAt": _iso(self.expires_at),
            "endedAt": _iso(self.ended_at),
            "attendees": sorted(self.attendees),
        }


class Meeting(BaseModel):
    """Aggregate root: one logical entity per meeting.

    Instances are immutable. Core operations return a new ``Meeting`` built
    with ``model_copy(update=...)`` and never touch the one they were given.
    """

    id: str = Field(..., min_length=1)
    title: str
    description: str
    owner_id: str = Field(..., min_length=1)
    max_participants: Optional[int] = Field(None, ge=1)
    location: Optional[str] = None
    created_at: datetime
    recruitment_status: RecruitmentStatus = RecruitmentStatus.OPEN
    participants: Tuple[Participant, ...] = ()
    availability: Dict[str, FrozenSet[str]] = Field(default_factory=dict)
    announcements: Tuple[Announcement, ...] = ()
    attendance_session: Optional[AttendanceSession] = None
    attendance_history: Tuple[AttendanceSession, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_membership_invariants(self) -> "Meeting":
        seen = set()
        owners = []
        for participant in self.participants:
            if participant.user_id in seen:
                raise ValueError(f"duplicate participant {participant.user_id!r}")
            seen.add(participant.user_id)
            if participant.status == ParticipantStatus.OWNER:
                owners.append(participant.user_id)
        if owners != [self.owner_id]:
            raise ValueError("meeting must have exactly one owner entry for owner_id")
        return self

    def participant(self, user_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    @property
    def approved_participants(self) -> List[Participant]:
        return [p for p in self.participants if p.is_approved]

    @property
    def approved_participant_count(self) -> int:
        return len(self.approved_participants)

    def to_document(self) -> JSONCompatibleDict:
        """Stored document body; availability lives in per-user entries beside it."""
        return self.model_dump(mode="json", exclude={"availability"})

    @classmethod
    def from_document(
        cls,
        document: JSONCompatibleDict,
        availability: Optional[Dict[str, Iterable[str]]] = None,
    ) -> "Meeting":
        payload = dict(document)
        payload["availability"] = {
            user_id: frozenset(slots) for user_id, slots in (availability or {}).items()
        }
        return cls.model_validate(payload)

    def to_payload(self) -> JSONCompatibleDict:
        """Return a JSON-friendly snapshot of the meeting."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "ownerId": self.owner_id,
            "maxParticipants": self.max_participants,
            "location": self.location,
            "createdAt": _iso(self.created_at),
            "recruitmentStatus": self.recruitment_status.value,
            "participants": [p.to_payload() for p in self.participants],
            "availability": {
                user_id: sorted(slots)
                for user_id, slots in sorted(self.availability.items())
            },
            "announcements": [a.to_payload() for a in self.announcements],
            "attendanceSession": (
                self.attendance_session.to_payload()
                if self.attendance_session
                else None
            ),
            "attendanceHistory": [s.to_payload() for s in self.attendance_history],
        }


# Request payloads accepted by the HTTP adapter.


class MeetingCreate(BaseModel):
    title: str = ""
    description: str = ""
    max_participants: Optional[int] = Field(None, ge=1)
    location: Optional[str] = Field(None, max_length=200)
    display_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=200)


class JoinRequest(BaseModel):
    display_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=200)

    @field_validator("display_name", "email")
    @classmethod
    def trim_optional(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class JoinDecisionRequest(BaseModel):
    action: JoinDecision


class AvailabilitySubmission(BaseModel):
    slot_ids: List[str] = Field(default_factory=list)

    @field_validator("slot_ids", mode="before")
    @classmethod
    def normalize_slot_ids(cls, value: Optional[Iterable]) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("slot_ids must be a list of slot ids")
        return [str(slot).strip() for slot in value]


class AnnouncementCreate(BaseModel):
    title: str = ""
    content: str = ""
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL


class AttendanceCodeSubmission(BaseModel):
    code: str = ""


class RecruitmentStatusUpdate(BaseModel):
    status: str
