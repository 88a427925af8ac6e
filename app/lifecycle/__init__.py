"""Lifecycle management for shutdown and cleanup."""

from app.lifecycle.cleanup_manager import (
    CleanupManager,
    CleanupOutcome,
    CleanupTask,
    get_cleanup_manager,
)

__all__ = [
    "CleanupManager",
    "CleanupOutcome",
    "CleanupTask",
    "get_cleanup_manager",
]
