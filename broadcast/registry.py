"""Thread-safe registry of subscriber connections."""

from __future__ import annotations

import threading
from typing import List, Optional, Set

from app.events import ErrorCategory, ErrorSeverity, publish_error
from broadcast.connection import Connection
from exceptions import ConnectionWriteError
from log_config.logger import get_logger
from telemetry.monitor import TelemetryMonitor

logger = get_logger(__name__)


class ConnectionRegistry:
    """Set of live outbound connections shared by the acceptor and broadcasters.

    One lock covers registration, removal, and the broadcast pass, so a
    connection removed during a pass is never written to again.

    Thread Safety:
        - register() is thread-safe
        - snapshot_and_broadcast() is thread-safe; concurrent broadcasts
          from different devices are serialized
    """

    def __init__(self, telemetry: Optional[TelemetryMonitor] = None) -> None:
        self._connections: Set[Connection] = set()
        self._lock = threading.Lock()
        self._telemetry = telemetry

    def register(self, conn: Connection) -> None:
        with self._lock:
            self._connections.add(conn)
            count = len(self._connections)
        logger.info(f"Client connected: {conn!r} ({count} total)")

    def snapshot_and_broadcast(self, payload: bytes) -> int:
        """Write payload to every registered connection.

        Dead connections and those whose write fails are removed after the
        pass and closed. Failures never reach the caller.

        Returns:
            Number of connections the payload was delivered to
        """
        delivered = 0
        dead: List[Connection] = []
        failures: List[Exception] = []
        with self._lock:
            for conn in self._connections:
                try:
                    if not conn.is_alive():
                        dead.append(conn)
                        continue
                    conn.send(payload)
                    delivered += 1
                except (ConnectionWriteError, OSError) as exc:
                    dead.append(conn)
                    failures.append(exc)
            for conn in dead:
                self._connections.discard(conn)

        for exc in failures:
            publish_error(
                category=ErrorCategory.NETWORK,
                severity=ErrorSeverity.WARNING,
                message=f"Dropping client after failed write: {exc}",
                source="ConnectionRegistry",
                exception=exc,
            )
        for conn in dead:
            self._close(conn)
        if dead:
            logger.info(f"Removed {len(dead)} disconnected client(s)")
            if self._telemetry is not None:
                self._telemetry.record_dropped_connections(len(dead))
        return delivered

    def close_all(self) -> int:
        """Remove and close every connection. Returns how many were closed."""
        with self._lock:
            conns = list(self._connections)
            self._connections.clear()
        for conn in conns:
            self._close(conn)
        return len(conns)

    def connections(self) -> List[Connection]:
        with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    @staticmethod
    def _close(conn: Connection) -> None:
        try:
            conn.close()
        except OSError as exc:
            logger.warning(f"Error closing {conn!r}: {exc}")
