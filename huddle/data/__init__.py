"""
Data access layer: SQLAlchemy-backed persistence for meeting snapshots.
"""

from .meeting_store import SqlMeetingStore

__all__ = ["SqlMeetingStore"]
