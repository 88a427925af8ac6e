"""Capture module."""

from .device_index import DeviceIndex
from .sensor_device import SensorDevice, StreamConfig
from .simulated_sensor import SimulatedSensor

__all__ = ["DeviceIndex", "SensorDevice", "SimulatedSensor", "StreamConfig"]
