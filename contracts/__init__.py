"""Shared data contracts for pose tracking and broadcast."""

from .types import (
    FrameBatch,
    FrameData,
    PoseResult,
    SubjectEntry,
    TrackingState,
    Vector3,
)

__all__ = [
    "FrameBatch",
    "FrameData",
    "PoseResult",
    "SubjectEntry",
    "TrackingState",
    "Vector3",
]
