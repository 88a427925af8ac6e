"""Configuration loading for the pose broadcaster."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 61420
    backlog: int = 16
    write_timeout_s: float = 0.05  # Upper bound on one client write
    accept_timeout_s: float = 0.5  # How often the acceptor checks for stop


@dataclass(frozen=True)
class TrackingConfig:
    max_missed_frames: int = 100


@dataclass(frozen=True)
class DeviceConfig:
    color_format: str = "RgbResolution640x480Fps30"
    depth_format: str = "Resolution320x240Fps30"
    near_range: bool = True  # Falls back to default range if unsupported
    seated: bool = True
    read_timeout_ms: int = 100
    simulated_count: int = 1
    subjects_per_device: int = 1


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = "logs"
    echo_broadcasts: bool = False


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    devices: DeviceConfig = field(default_factory=DeviceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text()) or {}

        # Validate against JSON Schema (fills in defaults)
        validate_config(data)

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")
    except OSError as e:
        logger.error(f"Failed to read configuration file {path}: {e}")
        raise InvalidConfigError(f"Cannot read configuration file {path}: {e}")

    return config_from_dict(data)


def config_from_dict(data: dict) -> AppConfig:
    """Build an AppConfig from an already validated dictionary.

    Raises:
        InvalidConfigError: If a section has unknown or mistyped keys
    """
    try:
        config = AppConfig(
            server=ServerConfig(**data.get("server", {})),
            tracking=TrackingConfig(**data.get("tracking", {})),
            devices=DeviceConfig(**data.get("devices", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )
    except ConfigError:
        raise
    except Exception as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.info(
        f"Configuration loaded successfully: {config.server.host}:{config.server.port}, "
        f"max_missed_frames={config.tracking.max_missed_frames}"
    )
    return config
