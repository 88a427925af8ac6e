"""Simulated sensor backend for pipeline testing without hardware."""

from __future__ import annotations

import re
import threading
import time
from typing import List, Optional, Tuple

import numpy as np

from contracts import FrameBatch, SubjectEntry, TrackingState
from exceptions import DeviceConfigurationError, DeviceConnectionError, FrameAcquisitionError

from .sensor_device import SensorDevice

_FORMAT_RE = re.compile(r"(\d+)x(\d+)Fps(\d+)")
FRAME_NUMBER_MASK = 0xFFFFFFFF

# Joint rows in the simulated geometry array
HEAD, SHOULDER_CENTER, SHOULDER_LEFT, SHOULDER_RIGHT = range(4)


def parse_format(fmt: str) -> Tuple[int, int, int]:
    """Return (width, height, fps) from a format name like 'Resolution320x240Fps30'."""
    match = _FORMAT_RE.search(fmt)
    if match is None:
        raise DeviceConfigurationError(f"Unsupported stream format: {fmt}")
    width, height, fps = (int(g) for g in match.groups())
    return width, height, fps


class _SimulatedSubject:
    """A subject that drifts in front of the sensor and occasionally leaves."""

    def __init__(self, slot: int, rng: np.random.Generator) -> None:
        self.slot = slot
        self._rng = rng
        self.subject_id = 0
        self.visible_for = 0
        self.hidden_for = 0
        self.phase = float(rng.uniform(0, 2 * np.pi))

    def start_episode(self, subject_id: int) -> None:
        self.subject_id = subject_id
        self.visible_for = int(self._rng.integers(150, 600))
        self.hidden_for = 0

    def geometry(self, t: float) -> np.ndarray:
        x = 0.3 * (self.slot - 0.5) + 0.1 * np.sin(0.5 * t + self.phase)
        y = 0.4 + 0.02 * np.sin(1.3 * t + self.phase)
        z = 1.2 + 0.15 * np.cos(0.4 * t + self.phase)
        yaw = 0.4 * np.sin(0.7 * t + self.phase)
        half = 0.18
        head = np.array([x, y, z])
        center = head - np.array([0.0, 0.25, 0.0])
        offset = half * np.array([np.cos(yaw), 0.0, np.sin(yaw)])
        return np.stack([head, center, center - offset, center + offset])


class SimulatedSensor(SensorDevice):
    """Generates color, depth, and skeleton data at the configured frame rate.

    Args:
        unique_id: Device id reported to the index
        subject_count: Number of subject slots to simulate
        supports_near_range: If False, enabling near range raises
        drop_rate: Probability that a batch is missing its skeleton data
        fault_rate: Probability that a read fails outright with FrameAcquisitionError
        start_frame: First frame number (wraps at 2**32)
        seed: Seed for the subject motion generator
        realtime: Sleep to honour the stream frame rate
    """

    def __init__(
        self,
        unique_id: str = "sim-0",
        subject_count: int = 1,
        supports_near_range: bool = True,
        drop_rate: float = 0.0,
        fault_rate: float = 0.0,
        start_frame: int = 0,
        seed: Optional[int] = None,
        realtime: bool = True,
    ) -> None:
        self._unique_id = unique_id
        self._supports_near_range = supports_near_range
        self._drop_rate = drop_rate
        self._fault_rate = fault_rate
        self._realtime = realtime
        self._rng = np.random.default_rng(seed)
        self._lock = threading.Lock()
        self._opened = False
        self._color_format = ""
        self._depth_format = ""
        self._color_shape = (0, 0, 4)
        self._depth_shape = (0, 0)
        self._fps = 30
        self.near_range = False
        self.seated = False
        self._frame_number = start_frame & FRAME_NUMBER_MASK
        self._next_subject_id = 1
        self._last_frame_time = time.monotonic()
        self._subjects: List[_SimulatedSubject] = []
        for slot in range(subject_count):
            subject = _SimulatedSubject(slot, self._rng)
            subject.start_episode(self._allocate_subject_id())
            self._subjects.append(subject)

    @property
    def unique_id(self) -> str:
        return self._unique_id

    def open(self) -> None:
        self._opened = True

    def set_streams(self, color_format: str, depth_format: str) -> None:
        color_w, color_h, fps = parse_format(color_format)
        depth_w, depth_h, _ = parse_format(depth_format)
        with self._lock:
            self._color_format = color_format
            self._depth_format = depth_format
            self._color_shape = (color_h, color_w, 4)  # BGRA
            self._depth_shape = (depth_h, depth_w)
            self._fps = fps

    def set_near_range(self, enabled: bool) -> None:
        if enabled and not self._supports_near_range:
            raise DeviceConfigurationError(
                "Near range requires a Kinect for Windows sensor", device_id=self._unique_id
            )
        self.near_range = enabled

    def set_seated(self, enabled: bool) -> None:
        self.seated = enabled

    def read_batch(self, timeout_ms: int) -> Optional[FrameBatch]:
        if not self._opened:
            raise DeviceConnectionError("Device not open", device_id=self._unique_id)

        if self._realtime and self._fps > 0:
            target_delay = 1.0 / self._fps
            elapsed = time.monotonic() - self._last_frame_time
            if elapsed < target_delay:
                wait = target_delay - elapsed
                if wait * 1000.0 > timeout_ms:
                    time.sleep(timeout_ms / 1000.0)
                    return None
                time.sleep(wait)
        self._last_frame_time = time.monotonic()

        if self._fault_rate > 0 and self._rng.random() < self._fault_rate:
            raise FrameAcquisitionError("Color and depth streams out of sync", device_id=self._unique_id)

        with self._lock:
            frame_number = self._frame_number
            self._frame_number = (self._frame_number + 1) & FRAME_NUMBER_MASK
            color_format, depth_format = self._color_format, self._depth_format
            color_shape, depth_shape = self._color_shape, self._depth_shape

        color = np.zeros(color_shape, dtype=np.uint8)
        color[..., 0] = 40
        color[..., 1] = 30
        color[..., 2] = 20
        color[..., 3] = 255
        depth = np.full(depth_shape, 2000 << 3, dtype=np.int16)  # 2m, player index bits clear

        subjects: Optional[List[SubjectEntry]] = self._step_subjects(frame_number)
        if self._drop_rate > 0 and self._rng.random() < self._drop_rate:
            subjects = None

        return FrameBatch(
            frame_number=frame_number,
            color_format=color_format,
            color_buffer=color,
            depth_format=depth_format,
            depth_buffer=depth,
            subjects=subjects,
        )

    def close(self) -> None:
        self._opened = False

    def _allocate_subject_id(self) -> int:
        subject_id = self._next_subject_id
        self._next_subject_id += 1
        return subject_id

    def _step_subjects(self, frame_number: int) -> List[SubjectEntry]:
        t = frame_number / float(self._fps or 30)
        entries = []
        for subject in self._subjects:
            if subject.visible_for > 0:
                subject.visible_for -= 1
                state = TrackingState.TRACKED
                if self._rng.random() < 0.05:
                    state = TrackingState.POSITION_ONLY
                entries.append(SubjectEntry(subject.subject_id, state, subject.geometry(t)))
                if subject.visible_for == 0:
                    subject.hidden_for = int(self._rng.integers(30, 200))
            else:
                entries.append(SubjectEntry(subject.subject_id, TrackingState.NOT_TRACKED))
                subject.hidden_for -= 1
                if subject.hidden_for <= 0:
                    subject.start_episode(self._allocate_subject_id())
        return entries
