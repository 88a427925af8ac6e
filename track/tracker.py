"""Per-subject tracking record owning one pose estimator handle."""

from __future__ import annotations

from typing import Optional

from app.events import ErrorCategory, ErrorSeverity, publish_error
from capture.sensor_device import SensorDevice
from contracts import FrameData, PoseResult
from estimate.pose_estimator import EstimatorFactory, PoseEstimator
from exceptions import EstimatorError, EstimatorInitError
from log_config.logger import get_logger

logger = get_logger(__name__)


class SubjectTracker:
    """Tracking continuity for one subject seen by one device.

    The estimator is created on the first frame that asks for an estimate.
    If creation fails the tracker never estimates again; a fresh tracker
    (after eviction) gets a fresh attempt.
    """

    def __init__(
        self,
        subject_id: int,
        device: SensorDevice,
        estimator_factory: EstimatorFactory,
        first_frame: int = 0,
    ) -> None:
        self.subject_id = subject_id
        self.last_seen_frame = first_frame
        self.last_succeeded = False
        self._device = device
        self._estimator_factory = estimator_factory
        self._estimator: Optional[PoseEstimator] = None
        self._estimator_failed = False
        self._released = False

    @property
    def estimator(self) -> Optional[PoseEstimator]:
        return self._estimator

    @property
    def estimator_failed(self) -> bool:
        return self._estimator_failed

    @property
    def released(self) -> bool:
        return self._released

    def on_frame(self, frame_number: int, frame: Optional[FrameData]) -> PoseResult:
        """Record a sighting and estimate the pose when frame data is given.

        Args:
            frame_number: Frame sequence number of the sighting
            frame: Image data for a fully tracked subject, or None when the
                subject is only coarsely present

        Returns:
            The estimator's result, or a failed result
        """
        self.last_seen_frame = frame_number
        if frame is None:
            return PoseResult.failed(self.subject_id)

        estimator = self._ensure_estimator()
        if estimator is None:
            return PoseResult.failed(self.subject_id)

        try:
            result = estimator.track(
                frame.color_format,
                frame.color_image,
                frame.depth_format,
                frame.depth_image,
                frame.geometry,
            )
        except EstimatorError as exc:
            logger.warning(f"Estimator failed for subject {self.subject_id}: {exc}")
            result = PoseResult.failed()
        except Exception as exc:
            # Faults stay with this tracker; the frame cycle must still sweep
            publish_error(
                category=ErrorCategory.ESTIMATOR,
                severity=ErrorSeverity.ERROR,
                message=f"Estimator raised for subject {self.subject_id}: {exc}",
                source="SubjectTracker",
                exception=exc,
                device_id=self._device.unique_id,
                subject_id=self.subject_id,
            )
            result = PoseResult.failed()

        self.last_succeeded = result.success
        if not result.success:
            return PoseResult.failed(self.subject_id)
        return PoseResult(
            success=True,
            rotation=result.rotation,
            translation=result.translation,
            subject_id=self.subject_id,
        )

    def release(self) -> None:
        """Close the estimator handle. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        estimator, self._estimator = self._estimator, None
        if estimator is not None:
            estimator.close()
            logger.debug(f"Released estimator for subject {self.subject_id}")

    def _ensure_estimator(self) -> Optional[PoseEstimator]:
        if self._estimator is not None or self._estimator_failed or self._released:
            return self._estimator
        try:
            self._estimator = self._estimator_factory(self._device)
        except EstimatorInitError as exc:
            self._estimator_failed = True
            publish_error(
                category=ErrorCategory.ESTIMATOR,
                severity=ErrorSeverity.WARNING,
                message=f"Could not create estimator for subject {self.subject_id}",
                source="SubjectTracker",
                exception=exc,
                device_id=self._device.unique_id,
            )
        return self._estimator

    def __repr__(self) -> str:
        return (
            f"SubjectTracker(subject_id={self.subject_id}, "
            f"last_seen_frame={self.last_seen_frame}, "
            f"estimator={'failed' if self._estimator_failed else self._estimator is not None})"
        )
