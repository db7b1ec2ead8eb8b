from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from ..schemas.meeting import Announcement, AnnouncementPriority, Meeting
from ..utils.identifiers import generate_announcement_id
from .errors import NotFoundError, ValidationError
from .membership import require_owner


def add_announcement(
    meeting: Meeting,
    author_id: str,
    *,
    title: str,
    content: str,
    priority: Union[AnnouncementPriority, str] = AnnouncementPriority.NORMAL,
    now: datetime,
    announcement_id: Optional[str] = None,
) -> Meeting:
    """Prepend an owner-authored notice; the log is kept newest-first."""
    require_owner(meeting, author_id, "post announcements")

    title = (title or "").strip()
    content = (content or "").strip()
    if not title:
        raise ValidationError("Announcement title is required")
    if not content:
        raise ValidationError("Announcement content is required")
    try:
        priority = AnnouncementPriority(priority or AnnouncementPriority.NORMAL)
    except ValueError as exc:
        raise ValidationError(f"Unknown announcement priority: {priority!r}") from exc

    announcement = Announcement(
        id=announcement_id or generate_announcement_id(now),
        title=title,
        content=content,
        author_id=author_id,
        priority=priority,
        created_at=now,
    )
    return meeting.model_copy(
        update={"announcements": (announcement,) + meeting.announcements}
    )


def remove_announcement(meeting: Meeting, actor_id: str, announcement_id: str) -> Meeting:
    require_owner(meeting, actor_id, "remove announcements")
    remaining = tuple(a for a in meeting.announcements if a.id != announcement_id)
    if len(remaining) == len(meeting.announcements):
        raise NotFoundError(f"Announcement {announcement_id!r} not found")
    return meeting.model_copy(update={"announcements": remaining})
