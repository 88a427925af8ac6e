"""Configuration validation using JSON Schema."""

from __future__ import annotations

import copy
from typing import Any, Dict

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "server": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "host": {"type": "string", "default": "127.0.0.1"},
                "port": {"type": "integer", "minimum": 0, "maximum": 65535, "default": 61420},
                "backlog": {"type": "integer", "minimum": 1, "maximum": 1024, "default": 16},
                "write_timeout_s": {"type": "number", "exclusiveMinimum": 0, "maximum": 5.0, "default": 0.05},
                "accept_timeout_s": {"type": "number", "exclusiveMinimum": 0, "maximum": 10.0, "default": 0.5},
            },
        },
        "tracking": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "max_missed_frames": {"type": "integer", "minimum": 0, "maximum": 100000, "default": 100},
            },
        },
        "devices": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "color_format": {"type": "string", "default": "RgbResolution640x480Fps30"},
                "depth_format": {"type": "string", "default": "Resolution320x240Fps30"},
                "near_range": {"type": "boolean", "default": True},
                "seated": {"type": "boolean", "default": True},
                "read_timeout_ms": {"type": "integer", "minimum": 1, "maximum": 5000, "default": 100},
                "simulated_count": {"type": "integer", "minimum": 0, "maximum": 8, "default": 1},
                "subjects_per_device": {"type": "integer", "minimum": 0, "maximum": 6, "default": 1},
            },
        },
        "logging": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "level": {
                    "type": "string",
                    "enum": ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
                    "default": "INFO",
                },
                "log_dir": {"type": "string", "default": "logs"},
                "echo_broadcasts": {"type": "boolean", "default": False},
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in properties.items():
                if "default" in subschema:
                    instance.setdefault(prop, copy.deepcopy(subschema["default"]))

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Missing sections and keys are filled in with their schema defaults.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))

        if errors:
            error_messages = []
            for error in errors:
                path = " -> ".join(str(p) for p in error.path) if error.path else "root"
                error_messages.append(f"{path}: {error.message}")

            logger.error(f"Configuration validation failed with {len(errors)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        logger.info("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


__all__ = ["validate_config", "CONFIG_SCHEMA"]
