"""Error reporting for components that must keep running after a fault.

The broadcast path, the acceptor loop, device workers and estimator
handles never raise into their callers. They publish an ``ErrorEvent``
here instead; telemetry subscribes to count them per category.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"  # Operation continues
    ERROR = "error"  # A device, client or estimator was dropped
    CRITICAL = "critical"


class ErrorCategory(Enum):
    DEVICE = "device"
    ESTIMATOR = "estimator"
    TRACKING = "tracking"
    NETWORK = "network"
    CONFIG = "config"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorEvent:
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def device_id(self) -> Optional[str]:
        return self.metadata.get("device_id")

    def __str__(self) -> str:
        where = self.source if self.device_id is None else f"{self.source}@{self.device_id}"
        text = f"[{self.severity.value.upper()}] {self.category.value}/{where}: {self.message}"
        if self.exception is not None:
            text += f" ({type(self.exception).__name__})"
        return text


ErrorCallback = Callable[[ErrorEvent], None]


class ErrorEventBus:
    """Fans error events out to subscribers and keeps a bounded history.

    A callback subscribed with a category only sees that category; one
    subscribed without a category sees every event. Callbacks run on the
    publishing thread, after the bus lock is released.
    """

    def __init__(self, max_history: int = 100):
        self._lock = threading.Lock()
        self._subscribers: Dict[Optional[ErrorCategory], List[ErrorCallback]] = defaultdict(list)
        self._history: Deque[ErrorEvent] = deque(maxlen=max_history)
        self._counts: Counter = Counter()

    def subscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            self._subscribers[category].append(callback)

    def unsubscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> bool:
        """Remove a subscription; False if it was not registered."""
        with self._lock:
            callbacks = self._subscribers.get(category, [])
            if callback not in callbacks:
                return False
            callbacks.remove(callback)
            return True

    def publish(self, event: ErrorEvent) -> None:
        with self._lock:
            self._history.append(event)
            self._counts[event.category] += 1
            callbacks = self._subscribers.get(event.category, []) + self._subscribers.get(None, [])

        logger.log(_LOG_LEVELS[event.severity], str(event), exc_info=event.exception)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Error subscriber {callback!r} failed on {event.category.value} event")

    def get_history(
        self, category: Optional[ErrorCategory] = None, limit: int = 100
    ) -> List[ErrorEvent]:
        """Most recent events, oldest first, optionally for one category."""
        with self._lock:
            history = list(self._history)
        if category is not None:
            history = [event for event in history if event.category is category]
        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        """Events published per category; not limited by the history window."""
        with self._lock:
            return dict(self._counts)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            self._counts.clear()


_error_bus = ErrorEventBus()


def get_error_bus() -> ErrorEventBus:
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[BaseException] = None,
    **metadata: Any,
) -> None:
    """Publish an event on the process-wide bus.

    Args:
        category: Which subsystem failed
        severity: How bad it is
        message: Human-readable description
        source: Reporting component
        exception: The exception that triggered the report, if any
        **metadata: Context such as ``device_id`` or ``subject_id``
    """
    _error_bus.publish(
        ErrorEvent(
            category=category,
            severity=severity,
            message=message,
            source=source,
            exception=exception,
            metadata=metadata,
        )
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
