"""Pose line formatting and fan-out to all subscribers."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from broadcast.registry import ConnectionRegistry
from contracts import Vector3
from log_config.logger import get_logger
from telemetry.monitor import TelemetryMonitor

logger = get_logger(__name__)

LINE_PREFIX = "Kinect"


def format_component(value: float) -> str:
    """Shortest text that round-trips the single-precision value.

    Whole numbers carry no fractional part ("1", not "1.0").
    """
    return np.format_float_positional(np.float32(value), trim="-")


def format_pose_line(
    device_index: int, rotation: Sequence[float], translation: Sequence[float]
) -> str:
    """Render one pose update as ``Kinect <idx> <rx> <ry> <rz> <tx> <ty> <tz>\\n``."""
    if len(rotation) != 3 or len(translation) != 3:
        raise ValueError("rotation and translation must have three components")
    fields = [LINE_PREFIX, str(int(device_index))]
    fields.extend(format_component(v) for v in rotation)
    fields.extend(format_component(v) for v in translation)
    return " ".join(fields) + "\n"


class BroadcastFanOut:
    """Sends each successful pose to every registered client, best effort."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        telemetry: Optional[TelemetryMonitor] = None,
        echo: bool = False,
    ) -> None:
        self._registry = registry
        self._telemetry = telemetry
        self._echo = echo

    def broadcast(
        self, device_index: int, rotation: Sequence[float], translation: Sequence[float]
    ) -> int:
        """Format and deliver one pose line.

        Returns:
            Number of clients the line was written to
        """
        line = format_pose_line(device_index, rotation, translation)
        if self._echo:
            logger.debug(f"Broadcast: {line.rstrip()}")
        delivered = self._registry.snapshot_and_broadcast(line.encode("ascii"))
        if self._telemetry is not None:
            self._telemetry.record_broadcast(delivered)
        return delivered


def parse_pose_line(line: str) -> Tuple[int, Vector3, Vector3]:
    """Parse a pose line back into (device_index, rotation, translation).

    Raises:
        ValueError: If the line is not a well-formed pose line
    """
    fields = line.split()
    if len(fields) != 8 or fields[0] != LINE_PREFIX:
        raise ValueError(f"Not a pose line: {line!r}")
    values = [float(v) for v in fields[2:]]
    return int(fields[1]), tuple(values[:3]), tuple(values[3:])
