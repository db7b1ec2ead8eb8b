"""Service layer for Campus Huddle meeting coordination."""

from .coordinator import MeetingCoordinator  # noqa: F401
from .meeting_aggregate import MeetingAggregate, OperationResult  # noqa: F401
from .meeting_store import InMemoryMeetingStore, MeetingStore  # noqa: F401

__all__ = [
    "InMemoryMeetingStore",
    "MeetingAggregate",
    "MeetingCoordinator",
    "MeetingStore",
    "OperationResult",
]
