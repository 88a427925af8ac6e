"""Pose estimator interface consumed by the subject trackers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

from contracts import PoseResult

if TYPE_CHECKING:
    from capture.sensor_device import SensorDevice


class PoseEstimator(ABC):
    """Per-subject 6-DoF pose estimator handle.

    One handle belongs to exactly one tracker and is closed when that
    tracker is evicted. Handles cannot survive a stream format change.
    """

    @abstractmethod
    def track(
        self,
        color_format: str,
        color_image: Any,
        depth_format: str,
        depth_image: Any,
        geometry: Any,
    ) -> PoseResult:
        """Estimate the subject's pose for one frame."""

    @abstractmethod
    def close(self) -> None:
        """Release estimator resources."""


# Creates a handle for a device; raises EstimatorInitError on failure.
EstimatorFactory = Callable[["SensorDevice"], PoseEstimator]
