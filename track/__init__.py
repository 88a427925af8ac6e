"""Per-device subject tracking."""

from .table import DEFAULT_MAX_MISSED_FRAMES, SubjectTrackerTable, missed_frames
from .tracker import SubjectTracker

__all__ = [
    "DEFAULT_MAX_MISSED_FRAMES",
    "SubjectTracker",
    "SubjectTrackerTable",
    "missed_frames",
]
