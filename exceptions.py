"""Custom exception classes for PoseCast."""

from __future__ import annotations

from typing import Optional


class PoseCastError(Exception):
    """Base exception for all PoseCast errors."""

    pass


class DeviceError(PoseCastError):
    """Base exception for sensor device errors."""

    def __init__(self, message: str, device_id: Optional[str] = None):
        self.device_id = device_id
        super().__init__(message)


class DeviceConnectionError(DeviceError):
    """Raised when a device cannot be opened or is lost."""

    pass


class DeviceConfigurationError(DeviceError):
    """Raised when a device rejects a stream or range setting."""

    pass


class FrameAcquisitionError(DeviceError):
    """Raised when a frame batch cannot be read from a device."""

    pass


class EstimatorError(PoseCastError):
    """Base exception for pose estimator errors."""

    pass


class EstimatorInitError(EstimatorError):
    """Raised when a pose estimator cannot be created for a subject."""

    pass


class NetworkError(PoseCastError):
    """Base exception for broadcast network errors."""

    pass


class ConnectionWriteError(NetworkError):
    """Raised when a payload cannot be written to a client connection."""

    pass


class ListenerError(NetworkError):
    """Raised when the pose listener cannot bind or listen."""

    pass


class ConfigError(PoseCastError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
