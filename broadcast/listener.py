"""TCP acceptor that registers every inbound subscriber."""

from __future__ import annotations

import socket
import threading
from typing import Optional, Tuple

from app.events import ErrorCategory, ErrorSeverity, publish_error
from broadcast.connection import SocketConnection
from broadcast.registry import ConnectionRegistry
from exceptions import ListenerError
from log_config.logger import get_logger

logger = get_logger(__name__)


class PoseListener:
    """Accepts subscribers on a fixed local port until stopped.

    No handshake: a client is registered as soon as it connects and only
    ever receives pose lines. Accept errors are reported and the loop
    keeps going.

    Args:
        registry: Registry new connections are added to
        host: Interface to bind (loopback by default)
        port: Port to bind; 0 picks a free port
        backlog: Listen backlog
        write_timeout_s: Write timeout applied to each client socket
        accept_timeout_s: Accept poll interval used to notice stop()
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        host: str = "127.0.0.1",
        port: int = 61420,
        backlog: int = 16,
        write_timeout_s: float = 0.05,
        accept_timeout_s: float = 0.5,
    ) -> None:
        self._registry = registry
        self._host = host
        self._port = port
        self._backlog = backlog
        self._write_timeout_s = write_timeout_s
        self._accept_timeout_s = accept_timeout_s
        self._server: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); valid after start()."""
        if self._server is None:
            raise ListenerError("Listener not started")
        return self._server.getsockname()[:2]

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        """Bind, listen, and start the acceptor thread.

        Raises:
            ListenerError: If the socket cannot be bound
        """
        if self._running.is_set():
            raise ListenerError("Listener already started")

        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self._host, self._port))
            server.listen(self._backlog)
            server.settimeout(self._accept_timeout_s)
        except OSError as exc:
            server.close()
            raise ListenerError(f"Cannot listen on {self._host}:{self._port}: {exc}") from exc

        self._server = server
        self._running.set()
        self._thread = threading.Thread(
            target=self._accept_loop, name="pose-listener", daemon=True
        )
        self._thread.start()
        logger.info(f"Listening for pose subscribers on {self.address[0]}:{self.address[1]}")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop accepting and close the listening socket. Idempotent."""
        if not self._running.is_set():
            return
        self._running.clear()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Listener thread did not stop within timeout")
            self._thread = None
        if self._server is not None:
            self._server.close()
        logger.info("Pose listener stopped")

    def _accept_loop(self) -> None:
        while self._running.is_set():
            try:
                client, peer = self._server.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running.is_set():
                    break
                publish_error(
                    category=ErrorCategory.NETWORK,
                    severity=ErrorSeverity.WARNING,
                    message=f"Accept failed: {exc}",
                    source="PoseListener",
                    exception=exc,
                )
                continue

            try:
                conn = SocketConnection(client, self._write_timeout_s, peer=peer)
            except OSError as exc:
                client.close()
                logger.warning(f"Could not set up client {peer}: {exc}")
                continue
            self._registry.register(conn)
