# Import all models here so that Base.metadata knows about them
from .meeting import MeetingAvailability, MeetingDocument

__all__ = ["MeetingAvailability", "MeetingDocument"]
