"""Unit tests for the shutdown cleanup manager."""

import threading
import time
import unittest
from unittest.mock import Mock

from app.lifecycle import CleanupManager, CleanupTask, get_cleanup_manager


class TestCleanupTask(unittest.TestCase):
    def test_cleanup_task_defaults(self):
        task = CleanupTask(name="test", callback=Mock())

        self.assertEqual(task.timeout, 5.0)
        self.assertFalse(task.critical)


class TestCleanupManager(unittest.TestCase):
    """Test CleanupManager functionality."""

    def setUp(self):
        self.manager = CleanupManager(default_timeout=2.0)

    def test_cleanup_runs_in_reverse_order(self):
        order = []
        self.manager.register_cleanup("listener", lambda: order.append("listener"))
        self.manager.register_cleanup("devices", lambda: order.append("devices"))

        self.assertTrue(self.manager.cleanup())
        self.assertEqual(order, ["devices", "listener"])

    def test_unregister_cleanup(self):
        callback = Mock()
        self.manager.register_cleanup("task", callback)

        self.assertTrue(self.manager.unregister_cleanup("task"))
        self.assertFalse(self.manager.unregister_cleanup("task"))

        self.manager.cleanup()
        callback.assert_not_called()

    def test_critical_failure_reported(self):
        self.manager.register_cleanup("bad", Mock(side_effect=RuntimeError("boom")), critical=True)
        self.manager.register_cleanup("good", Mock())

        self.assertFalse(self.manager.cleanup())

    def test_non_critical_failure_ignored(self):
        self.manager.register_cleanup("bad", Mock(side_effect=RuntimeError("boom")))

        self.assertTrue(self.manager.cleanup())

    def test_timeout_does_not_block_remaining_tasks(self):
        release = threading.Event()
        after = Mock()
        self.manager.register_cleanup("after", after)
        self.manager.register_cleanup("hung", release.wait, timeout=0.2, critical=True)

        start = time.time()
        self.assertFalse(self.manager.cleanup())
        release.set()

        self.assertLess(time.time() - start, 2.0)
        after.assert_called_once()

    def test_outcomes_recorded_per_task(self):
        self.manager.register_cleanup("ok", Mock())
        self.manager.register_cleanup("bad", Mock(side_effect=OSError("busy")))

        self.manager.cleanup()

        outcomes = {o.name: o for o in self.manager.last_outcomes}
        self.assertEqual(outcomes["bad"].status, "failed")
        self.assertIsInstance(outcomes["bad"].error, OSError)
        self.assertTrue(outcomes["ok"].succeeded)

    def test_reregistering_replaces_and_moves_task(self):
        first = Mock()
        second = Mock()
        self.manager.register_cleanup("devices", first)
        self.manager.register_cleanup("clients", Mock())
        self.manager.register_cleanup("devices", second)

        self.assertEqual(self.manager.task_names(), ["devices", "clients"])
        self.manager.cleanup()
        first.assert_not_called()
        second.assert_called_once()

    def test_global_manager_is_singleton(self):
        self.assertIs(get_cleanup_manager(), get_cleanup_manager())


if __name__ == "__main__":
    unittest.main()
