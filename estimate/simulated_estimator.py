"""Geometry-based pose estimator used with the simulated sensor."""

from __future__ import annotations

from typing import Any

import numpy as np

from capture.simulated_sensor import HEAD, SHOULDER_CENTER, SHOULDER_LEFT, SHOULDER_RIGHT
from contracts import PoseResult
from exceptions import EstimatorError, EstimatorInitError

from .pose_estimator import PoseEstimator

MIN_DEPTH_M = 0.4
MAX_DEPTH_M = 4.0


class SimulatedPoseEstimator(PoseEstimator):
    """Derives head rotation (degrees) and translation (meters) from joints.

    Rotation is (pitch, yaw, roll): yaw and roll come from the shoulder
    line, pitch from the head offset over the shoulder center.
    """

    def __init__(self) -> None:
        self._closed = False

    def track(
        self,
        color_format: str,
        color_image: Any,
        depth_format: str,
        depth_image: Any,
        geometry: Any,
    ) -> PoseResult:
        if self._closed:
            raise EstimatorError("Estimator used after close")
        if geometry is None or color_image is None or depth_image is None:
            return PoseResult.failed()

        joints = np.asarray(geometry, dtype=np.float64)
        if joints.ndim != 2 or joints.shape[0] <= SHOULDER_RIGHT or joints.shape[1] != 3:
            return PoseResult.failed()

        head = joints[HEAD]
        if not (MIN_DEPTH_M <= head[2] <= MAX_DEPTH_M):
            return PoseResult.failed()

        shoulders = joints[SHOULDER_RIGHT] - joints[SHOULDER_LEFT]
        neck = head - joints[SHOULDER_CENTER]
        yaw = np.degrees(np.arctan2(shoulders[2], shoulders[0]))
        roll = np.degrees(np.arctan2(shoulders[1], shoulders[0]))
        pitch = np.degrees(np.arctan2(neck[2], neck[1]))

        return PoseResult(
            success=True,
            rotation=(float(pitch), float(yaw), float(roll)),
            translation=(float(head[0]), float(head[1]), float(head[2])),
        )

    def close(self) -> None:
        self._closed = True


class SimulatedEstimatorFactory:
    """Estimator factory; can be told to fail creation for testing.

    Args:
        fail_on_create: Raise EstimatorInitError instead of creating
    """

    def __init__(self, fail_on_create: bool = False) -> None:
        self.fail_on_create = fail_on_create
        self.created = 0

    def __call__(self, device) -> SimulatedPoseEstimator:
        if self.fail_on_create:
            raise EstimatorInitError(f"Estimator unavailable for {device.unique_id}")
        self.created += 1
        return SimulatedPoseEstimator()
