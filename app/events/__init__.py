"""Error reporting for components that must not propagate failures."""

from app.events.error_bus import (
    ErrorCallback,
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)

__all__ = [
    "ErrorCallback",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "ErrorSeverity",
    "get_error_bus",
    "publish_error",
]
