from pathlib import Path

import pytest

from configs.settings import DEFAULT_CONFIG_PATH, AppConfig, config_from_dict, load_config
from exceptions import ConfigValidationError, InvalidConfigError


def test_load_default_config() -> None:
    config = load_config(DEFAULT_CONFIG_PATH)

    assert config.server.host == "127.0.0.1"
    assert config.server.port == 61420
    assert config.tracking.max_missed_frames == 100
    assert config.devices.color_format == "RgbResolution640x480Fps30"
    assert config.devices.near_range is True


def test_missing_sections_use_defaults(tmp_path: Path) -> None:
    path = tmp_path / "partial.yaml"
    path.write_text("tracking:\n  max_missed_frames: 30\n")

    config = load_config(path)

    assert config.tracking.max_missed_frames == 30
    assert config.server == AppConfig().server
    assert config.logging.echo_broadcasts is False


def test_empty_file_is_all_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path) == AppConfig()


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path / "nope.yaml")


def test_malformed_yaml(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("server: [unclosed\n")

    with pytest.raises(InvalidConfigError):
        load_config(path)


def test_schema_violation(tmp_path: Path) -> None:
    path = tmp_path / "bad_port.yaml"
    path.write_text("server:\n  port: 70000\n")

    with pytest.raises(ConfigValidationError) as exc_info:
        load_config(path)
    assert any("port" in msg for msg in exc_info.value.validation_errors)


def test_unknown_key_in_dict() -> None:
    with pytest.raises(InvalidConfigError):
        config_from_dict({"server": {"colour": "blue"}})


def test_directory_path_is_invalid_config(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path)
