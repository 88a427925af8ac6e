"""Outbound client connection wrapper."""

from __future__ import annotations

import select
import socket
import threading
from typing import Optional, Protocol, Tuple

from exceptions import ConnectionWriteError


class Connection(Protocol):
    """Expected interface for a registered subscriber connection."""

    def is_alive(self) -> bool:
        """Return False once the peer is known to be gone."""

    def send(self, payload: bytes) -> None:
        """Write the whole payload or raise ConnectionWriteError/OSError."""

    def close(self) -> None:
        """Close the connection; idempotent."""


class SocketConnection:
    """A TCP subscriber with bounded write time.

    Args:
        sock: Accepted client socket
        write_timeout_s: Upper bound for one write; a stalled peer fails
            the write instead of blocking the broadcaster
        peer: Remote address, for logging
    """

    def __init__(
        self,
        sock: socket.socket,
        write_timeout_s: float = 0.05,
        peer: Optional[Tuple[str, int]] = None,
    ) -> None:
        self._sock = sock
        self._sock.settimeout(write_timeout_s)
        if sock.family in (socket.AF_INET, socket.AF_INET6):
            self._sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._closed = False
        self._close_lock = threading.Lock()
        self.peer = peer

    @property
    def closed(self) -> bool:
        return self._closed

    def is_alive(self) -> bool:
        if self._closed or self._sock.fileno() < 0:
            return False
        try:
            readable, _, errored = select.select([self._sock], [], [self._sock], 0)
            if errored:
                return False
            if readable:
                # Readable with no data means the peer closed its side
                return self._sock.recv(1, socket.MSG_PEEK) != b""
        except (OSError, ValueError):
            return False
        return True

    def send(self, payload: bytes) -> None:
        try:
            self._sock.sendall(payload)
        except OSError as exc:
            raise ConnectionWriteError(f"Write to {self.peer} failed: {exc}") from exc

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone
        self._sock.close()

    def __repr__(self) -> str:
        return f"SocketConnection(peer={self.peer}, closed={self._closed})"
