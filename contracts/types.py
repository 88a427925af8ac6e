"""Core data contracts for capture, tracking, estimation, and broadcast."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Tuple

Vector3 = Tuple[float, float, float]


class TrackingState(Enum):
    """Per-subject tracking state reported by a sensing device."""

    NOT_TRACKED = "not_tracked"
    POSITION_ONLY = "position_only"  # Coarse presence, no skeletal solve
    TRACKED = "tracked"

    @property
    def is_present(self) -> bool:
        """Subject should keep (or create) a tracker this frame."""
        return self is not TrackingState.NOT_TRACKED

    @property
    def wants_estimate(self) -> bool:
        """Subject is fully resolved and should be passed to the estimator."""
        return self is TrackingState.TRACKED


@dataclass(frozen=True)
class SubjectEntry:
    subject_id: int
    state: TrackingState
    geometry: Any = None  # Joint positions, shape (n_joints, 3)


@dataclass(frozen=True)
class FrameBatch:
    """One synchronized color/depth/subject set from a device.

    A ``None`` buffer or subject list means that part of the batch could
    not be acquired; the whole batch is then skipped.
    """

    frame_number: int
    color_format: str
    color_buffer: Any
    depth_format: str
    depth_buffer: Any
    subjects: Optional[Sequence[SubjectEntry]]

    @property
    def is_complete(self) -> bool:
        return (
            self.color_buffer is not None
            and self.depth_buffer is not None
            and self.subjects is not None
        )


@dataclass(frozen=True)
class FrameData:
    color_format: str
    color_image: Any
    depth_format: str
    depth_image: Any
    geometry: Any = None


@dataclass(frozen=True)
class PoseResult:
    success: bool
    rotation: Vector3 = (0.0, 0.0, 0.0)
    translation: Vector3 = (0.0, 0.0, 0.0)
    subject_id: Optional[int] = None

    @classmethod
    def failed(cls, subject_id: Optional[int] = None) -> "PoseResult":
        return cls(success=False, subject_id=subject_id)
