from .meeting import (
    Announcement,
    AnnouncementCreate,
    AnnouncementPriority,
    AttendanceCodeSubmission,
    AttendanceSession,
    AvailabilitySubmission,
    DensityClass,
    JoinDecision,
    JoinDecisionRequest,
    JoinRequest,
    Meeting,
    MeetingCreate,
    Participant,
    ParticipantStatus,
    RecruitmentStatus,
    RecruitmentStatusUpdate,
)

__all__ = [
    "Announcement",
    "AnnouncementCreate",
    "AnnouncementPriority",
    "AttendanceCodeSubmission",
    "AttendanceSession",
    "AvailabilitySubmission",
    "DensityClass",
    "JoinDecision",
    "JoinDecisionRequest",
    "JoinRequest",
    "Meeting",
    "MeetingCreate",
    "Participant",
    "ParticipantStatus",
    "RecruitmentStatus",
    "RecruitmentStatusUpdate",
]
