from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.sql import func  # For default timestamps

from ..database import Base


class MeetingDocument(Base):
    """One row per meeting: the versioned document minus availability."""

    __tablename__ = "meetings"

    meeting_id = Column(String(32), primary_key=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    owner_id = Column(String(64), nullable=False, index=True)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<MeetingDocument(meeting_id={self.meeting_id!r}, version={self.version})>"


class MeetingAvailability(Base):
    """Per-user slot selection; written independently of the meeting document."""

    __tablename__ = "meeting_availability"

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(String(64), primary_key=True)
    slot_ids = Column(JSON, nullable=False, default=list)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
