"""Sensor abstraction for depth/color/skeleton capture backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from contracts import FrameBatch
from exceptions import DeviceConfigurationError
from log_config.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StreamConfig:
    color_format: str
    depth_format: str
    near_range: bool = True
    seated: bool = True


class SensorDevice(ABC):
    """A sensing device that delivers synchronized frame batches.

    Batches from one device are read sequentially by a single worker.
    """

    @property
    @abstractmethod
    def unique_id(self) -> str:
        """Stable identifier used to resolve the device index."""

    @abstractmethod
    def open(self) -> None:
        """Open the device."""

    @abstractmethod
    def set_streams(self, color_format: str, depth_format: str) -> None:
        """Enable color and depth streams in the given formats."""

    @abstractmethod
    def set_near_range(self, enabled: bool) -> None:
        """Switch depth range; raises DeviceConfigurationError if unsupported."""

    @abstractmethod
    def set_seated(self, enabled: bool) -> None:
        """Select seated (upper body) skeleton tracking."""

    @abstractmethod
    def read_batch(self, timeout_ms: int) -> Optional[FrameBatch]:
        """Read the next frame batch, or None if none arrived in time."""

    @abstractmethod
    def close(self) -> None:
        """Close the device."""

    def configure(self, streams: StreamConfig) -> bool:
        """Apply a stream configuration.

        Near range is tried first; devices that reject it fall back to the
        default range.

        Returns:
            True if near range is active
        """
        self.set_streams(streams.color_format, streams.depth_format)
        near_active = False
        if streams.near_range:
            try:
                self.set_near_range(True)
                near_active = True
            except DeviceConfigurationError as exc:
                logger.info(f"Device {self.unique_id} has no near range, using default: {exc}")
                self.set_near_range(False)
        else:
            self.set_near_range(False)
        self.set_seated(streams.seated)
        return near_active
