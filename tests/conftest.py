"""Shared fakes for tracker, coordinator, and broadcast tests."""

from typing import List, Optional

import numpy as np
import pytest

from contracts import FrameBatch, PoseResult, SubjectEntry
from exceptions import ConnectionWriteError, EstimatorInitError


class FakeDevice:
    """Minimal device: only the id is used by trackers."""

    def __init__(self, unique_id: str = "fake-0") -> None:
        self.unique_id = unique_id


class FakeEstimator:
    """Estimator returning a fixed result and counting close() calls."""

    def __init__(self, result: Optional[PoseResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result or PoseResult(True, (0.0, 0.0, 0.0), (1.0, 2.0, 3.0))
        self.error = error
        self.close_count = 0
        self.track_calls = 0

    def track(self, color_format, color_image, depth_format, depth_image, geometry):
        self.track_calls += 1
        if self.error is not None:
            raise self.error
        return self.result

    def close(self) -> None:
        self.close_count += 1


class CountingFactory:
    """Estimator factory that keeps every handle it creates."""

    def __init__(self, result: Optional[PoseResult] = None, fail: bool = False) -> None:
        self.result = result
        self.fail = fail
        self.created: List[FakeEstimator] = []

    def __call__(self, device) -> FakeEstimator:
        if self.fail:
            raise EstimatorInitError("no estimator")
        estimator = FakeEstimator(self.result)
        self.created.append(estimator)
        return estimator


class FakeConnection:
    """In-memory subscriber connection."""

    def __init__(self, alive: bool = True, fail_writes: bool = False) -> None:
        self.alive = alive
        self.fail_writes = fail_writes
        self.written: List[bytes] = []
        self.close_count = 0

    def is_alive(self) -> bool:
        return self.alive

    def send(self, payload: bytes) -> None:
        if self.fail_writes:
            raise ConnectionWriteError("broken pipe")
        self.written.append(payload)

    def close(self) -> None:
        self.close_count += 1


def make_batch(
    frame_number: int,
    subjects,
    color_format: str = "RgbResolution640x480Fps30",
    depth_format: str = "Resolution320x240Fps30",
    complete: bool = True,
) -> FrameBatch:
    """Build a small frame batch; subjects are (id, TrackingState) pairs."""
    entries = [
        SubjectEntry(subject_id, state, np.zeros((4, 3)))
        for subject_id, state in subjects
    ]
    return FrameBatch(
        frame_number=frame_number,
        color_format=color_format,
        color_buffer=np.zeros((4, 4, 4), dtype=np.uint8),
        depth_format=depth_format,
        depth_buffer=np.zeros((2, 2), dtype=np.int16) if complete else None,
        subjects=entries,
    )


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def factory():
    return CountingFactory()


@pytest.fixture
def connection_factory():
    return FakeConnection


@pytest.fixture
def batch_factory():
    return make_batch

