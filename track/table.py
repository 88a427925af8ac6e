"""Subject tracker table: one per device, owned by that device's worker."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from capture.sensor_device import SensorDevice
from contracts import FrameData, PoseResult
from estimate.pose_estimator import EstimatorFactory
from log_config.logger import get_logger
from track.tracker import SubjectTracker

logger = get_logger(__name__)

DEFAULT_MAX_MISSED_FRAMES = 100
FRAME_NUMBER_MODULUS = 1 << 32


def missed_frames(current_frame: int, last_seen_frame: int) -> int:
    """Frames elapsed since last sighting, wraparound-safe (unsigned 32-bit)."""
    return (current_frame - last_seen_frame) % FRAME_NUMBER_MODULUS


class SubjectTrackerTable:
    """Maps transient subject ids to trackers for a single device.

    Not thread-safe: the table is only touched by its device's worker.
    Every eviction path releases the tracker's estimator exactly once.
    """

    def __init__(
        self,
        device: SensorDevice,
        estimator_factory: EstimatorFactory,
        max_missed_frames: int = DEFAULT_MAX_MISSED_FRAMES,
    ) -> None:
        self._device = device
        self._estimator_factory = estimator_factory
        self.max_missed_frames = max_missed_frames
        self._trackers: Dict[int, SubjectTracker] = {}

    def update(
        self, subject_id: int, frame_number: int, frame: Optional[FrameData]
    ) -> PoseResult:
        """Record a sighting, creating a tracker on first sight.

        Args:
            subject_id: Transient subject id
            frame_number: Frame sequence number of the batch
            frame: Frame data to estimate from, or None for a subject that is
                present but not fully tracked

        Returns:
            The tracker's pose result for this frame
        """
        tracker = self._trackers.get(subject_id)
        if tracker is None:
            tracker = SubjectTracker(
                subject_id, self._device, self._estimator_factory, first_frame=frame_number
            )
            self._trackers[subject_id] = tracker
            logger.debug(f"Tracking new subject {subject_id} on {self._device.unique_id}")
        return tracker.on_frame(frame_number, frame)

    def sweep(self, current_frame_number: int) -> List[int]:
        """Evict trackers not seen for more than max_missed_frames.

        Returns:
            Ids of evicted subjects
        """
        stale = [
            subject_id
            for subject_id, tracker in self._trackers.items()
            if missed_frames(current_frame_number, tracker.last_seen_frame) > self.max_missed_frames
        ]
        for subject_id in stale:
            self._evict(subject_id)
        if stale:
            logger.debug(f"Evicted stale subjects {stale} at frame {current_frame_number}")
        return stale

    def on_format_changed(self) -> None:
        """Drop every tracker; estimators cannot survive a format change."""
        count = len(self._trackers)
        for subject_id in list(self._trackers):
            self._evict(subject_id)
        if count:
            logger.info(f"Stream format changed on {self._device.unique_id}, reset {count} trackers")

    def remove(self, subject_id: int) -> bool:
        if subject_id not in self._trackers:
            return False
        self._evict(subject_id)
        return True

    def close(self) -> None:
        """Release all trackers (shutdown)."""
        for subject_id in list(self._trackers):
            self._evict(subject_id)

    def get(self, subject_id: int) -> Optional[SubjectTracker]:
        return self._trackers.get(subject_id)

    def __contains__(self, subject_id: object) -> bool:
        return subject_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)

    def __iter__(self) -> Iterator[SubjectTracker]:
        return iter(list(self._trackers.values()))

    def _evict(self, subject_id: int) -> None:
        tracker = self._trackers.pop(subject_id)
        try:
            tracker.release()
        except Exception:
            logger.exception(f"Error releasing estimator for subject {subject_id}")
