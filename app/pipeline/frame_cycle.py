"""Per-device frame cycle: format checks, tracker updates, sweep, broadcast."""

from __future__ import annotations

import time
from typing import Any, List, Optional

import numpy as np

from broadcast.fanout import BroadcastFanOut
from contracts import FrameBatch, FrameData, PoseResult
from log_config.logger import get_logger, log_performance
from telemetry.monitor import TelemetryMonitor
from track.table import SubjectTrackerTable

logger = get_logger(__name__)


class FrameCycleCoordinator:
    """Drives one device's tracker table once per frame batch.

    Calls must be sequential for a given device; the coordinator and its
    table hold no locks. Only the broadcast step touches shared state.

    Args:
        device_index: Index reported in every pose line from this device
        table: The device's subject tracker table
        fanout: Broadcast fan-out shared by all devices
        telemetry: Optional counters
    """

    def __init__(
        self,
        device_index: int,
        table: SubjectTrackerTable,
        fanout: BroadcastFanOut,
        telemetry: Optional[TelemetryMonitor] = None,
    ) -> None:
        self.device_index = device_index
        self.table = table
        self._fanout = fanout
        self._telemetry = telemetry
        self._color_format: Optional[str] = None
        self._depth_format: Optional[str] = None
        self._color_image: Optional[np.ndarray] = None
        self._depth_image: Optional[np.ndarray] = None

    @property
    def color_image(self) -> Optional[np.ndarray]:
        return self._color_image

    @property
    def depth_image(self) -> Optional[np.ndarray]:
        return self._depth_image

    def process_batch(self, batch: Optional[FrameBatch]) -> List[PoseResult]:
        """Run one frame cycle.

        Incomplete batches are skipped entirely: no updates and no sweep.

        Returns:
            Successful pose results, each broadcast once
        """
        if batch is None or not batch.is_complete:
            if self._telemetry is not None:
                self._telemetry.record_batch(self.device_index, skipped=True)
            return []

        start = time.perf_counter()
        self._check_formats(batch)
        self._depth_image = self._copy_into(self._depth_image, batch.depth_buffer)
        self._color_image = self._copy_into(self._color_image, batch.color_buffer)

        successes: List[PoseResult] = []
        for subject in batch.subjects:
            if not subject.state.is_present:
                continue
            frame = None
            if subject.state.wants_estimate:
                frame = FrameData(
                    color_format=batch.color_format,
                    color_image=self._color_image,
                    depth_format=batch.depth_format,
                    depth_image=self._depth_image,
                    geometry=subject.geometry,
                )
            result = self.table.update(subject.subject_id, batch.frame_number, frame)
            if result.success:
                successes.append(result)

        self.table.sweep(batch.frame_number)

        for result in successes:
            self._fanout.broadcast(self.device_index, result.rotation, result.translation)

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        log_performance(f"frame {batch.frame_number} on device {self.device_index}", elapsed_ms)
        if self._telemetry is not None:
            self._telemetry.record_batch(self.device_index)
            self._telemetry.record_poses(len(successes))
            self._telemetry.record_latency_ms(elapsed_ms)
        return successes

    def reset(self) -> None:
        """Release every tracker and drop buffered images."""
        self.table.on_format_changed()
        self._color_image = None
        self._depth_image = None
        self._color_format = None
        self._depth_format = None

    def _check_formats(self, batch: FrameBatch) -> None:
        # The estimator cannot follow a format change mid-track, so reset.
        if self._depth_format != batch.depth_format:
            self.table.on_format_changed()
            self._depth_image = None
            self._depth_format = batch.depth_format

        if self._color_format != batch.color_format:
            self.table.on_format_changed()
            self._color_image = None
            self._color_format = batch.color_format

    @staticmethod
    def _copy_into(buffer: Optional[np.ndarray], data: Any) -> np.ndarray:
        source = np.asarray(data)
        if buffer is None or buffer.shape != source.shape or buffer.dtype != source.dtype:
            buffer = np.empty_like(source)
        np.copyto(buffer, source)
        return buffer
