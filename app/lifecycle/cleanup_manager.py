"""Ordered, time-bounded shutdown of the pose service."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CleanupTask:
    name: str
    callback: Callable[[], None]
    timeout: float = 5.0
    critical: bool = False  # Failure or timeout makes cleanup() return False


@dataclass(frozen=True)
class CleanupOutcome:
    name: str
    status: str  # "ok", "timeout" or "failed"
    elapsed_s: float
    critical: bool
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"


class CleanupManager:
    """Runs shutdown tasks newest first, each on its own thread.

    A task that overruns its timeout is abandoned (its daemon thread is left
    running) and the next task starts, so one hung device or client cannot
    hold the rest of shutdown. Task names are unique; registering a name
    again replaces the old task and moves it to the end of the order.
    """

    def __init__(self, default_timeout: float = 10.0):
        self._tasks: Dict[str, CleanupTask] = {}
        self._default_timeout = default_timeout
        self._lock = threading.Lock()
        self._running = False
        self.last_outcomes: List[CleanupOutcome] = []

    def register_cleanup(
        self,
        name: str,
        callback: Callable[[], None],
        timeout: Optional[float] = None,
        critical: bool = False,
    ) -> None:
        with self._lock:
            self._tasks.pop(name, None)
            self._tasks[name] = CleanupTask(
                name=name,
                callback=callback,
                timeout=timeout or self._default_timeout,
                critical=critical,
            )
        logger.debug(f"Registered cleanup task: {name}")

    def unregister_cleanup(self, name: str) -> bool:
        with self._lock:
            removed = self._tasks.pop(name, None) is not None
        if removed:
            logger.debug(f"Unregistered cleanup task: {name}")
        return removed

    def task_names(self) -> List[str]:
        """Registered task names in execution order."""
        with self._lock:
            return list(reversed(self._tasks))

    def cleanup(self) -> bool:
        """Run every task, most recently registered first.

        Returns:
            True if no critical task failed or timed out
        """
        with self._lock:
            if self._running:
                logger.warning("Cleanup already in progress")
                return False
            self._running = True
            tasks = list(reversed(self._tasks.values()))

        started = time.monotonic()
        try:
            outcomes = [self._run_task(task) for task in tasks]
        finally:
            with self._lock:
                self._running = False

        self.last_outcomes = outcomes
        failed = [o.name for o in outcomes if o.critical and not o.succeeded]
        logger.info(
            f"Cleanup finished in {time.monotonic() - started:.2f}s "
            f"({len(outcomes)} task(s), critical failures: {failed or 'none'})"
        )
        return not failed

    def _run_task(self, task: CleanupTask) -> CleanupOutcome:
        done = threading.Event()
        errors: List[BaseException] = []

        def target() -> None:
            try:
                task.callback()
            except Exception as exc:
                errors.append(exc)
            finally:
                done.set()

        started = time.monotonic()
        threading.Thread(target=target, name=f"cleanup-{task.name}", daemon=True).start()
        finished = done.wait(task.timeout)
        elapsed = time.monotonic() - started

        if not finished:
            logger.error(f"Cleanup task '{task.name}' timed out after {task.timeout}s")
            return CleanupOutcome(task.name, "timeout", elapsed, task.critical)
        if errors:
            logger.error(f"Cleanup task '{task.name}' failed: {errors[0]}", exc_info=errors[0])
            return CleanupOutcome(task.name, "failed", elapsed, task.critical, errors[0])
        logger.info(f"Cleanup task '{task.name}' completed in {elapsed:.2f}s")
        return CleanupOutcome(task.name, "ok", elapsed, task.critical)


_cleanup_manager = CleanupManager()


def get_cleanup_manager() -> CleanupManager:
    """Process-wide manager the launcher runs on exit."""
    return _cleanup_manager


__all__ = [
    "CleanupManager",
    "CleanupOutcome",
    "CleanupTask",
    "get_cleanup_manager",
]
