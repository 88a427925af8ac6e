"""Telemetry for frame processing and broadcast health."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Deque, Dict

if TYPE_CHECKING:
    from app.events import ErrorEvent


@dataclass
class LatencyStats:
    p50_ms: float
    p95_ms: float
    max_ms: float


@dataclass
class TelemetrySnapshot:
    batches_by_device: Dict[int, int]
    skipped_by_device: Dict[int, int]
    poses_estimated: int
    broadcasts: int
    deliveries: int
    dropped_connections: int
    latency: LatencyStats
    errors_by_category: Dict[str, int]


@dataclass
class TelemetryMonitor:
    """Counters shared by device workers and the broadcaster.

    Latency samples are kept in a bounded window.
    """

    max_samples: int = 1000
    latency_samples_ms: Deque[float] = field(default_factory=deque)
    batches_by_device: Dict[int, int] = field(default_factory=dict)
    skipped_by_device: Dict[int, int] = field(default_factory=dict)
    poses_estimated: int = 0
    broadcasts: int = 0
    deliveries: int = 0
    dropped_connections: int = 0
    errors_by_category: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_latency_ms(self, value: float) -> None:
        with self._lock:
            self.latency_samples_ms.append(value)
            while len(self.latency_samples_ms) > self.max_samples:
                self.latency_samples_ms.popleft()

    def record_batch(self, device_index: int, skipped: bool = False) -> None:
        with self._lock:
            counts = self.skipped_by_device if skipped else self.batches_by_device
            counts[device_index] = counts.get(device_index, 0) + 1

    def record_poses(self, count: int) -> None:
        with self._lock:
            self.poses_estimated += count

    def record_broadcast(self, delivered: int) -> None:
        with self._lock:
            self.broadcasts += 1
            self.deliveries += delivered

    def record_dropped_connections(self, count: int) -> None:
        with self._lock:
            self.dropped_connections += count

    def record_error(self, event: "ErrorEvent") -> None:
        """Error bus subscriber: count events per category."""
        key = event.category.value
        with self._lock:
            self.errors_by_category[key] = self.errors_by_category.get(key, 0) + 1

    def summarize(self) -> LatencyStats:
        with self._lock:
            values = sorted(self.latency_samples_ms)
        if not values:
            return LatencyStats(p50_ms=0.0, p95_ms=0.0, max_ms=0.0)
        max_ms = values[-1]
        p50_ms = values[int(0.5 * (len(values) - 1))]
        p95_ms = values[int(0.95 * (len(values) - 1))]
        return LatencyStats(p50_ms=p50_ms, p95_ms=p95_ms, max_ms=max_ms)

    def snapshot(self) -> TelemetrySnapshot:
        latency = self.summarize()
        with self._lock:
            return TelemetrySnapshot(
                batches_by_device=dict(self.batches_by_device),
                skipped_by_device=dict(self.skipped_by_device),
                poses_estimated=self.poses_estimated,
                broadcasts=self.broadcasts,
                deliveries=self.deliveries,
                dropped_connections=self.dropped_connections,
                latency=latency,
                errors_by_category=dict(self.errors_by_category),
            )
