import sys
import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from hustle_tracker.activity import LastInputCell, PynputInputMonitor, detect_input_monitor

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class LastInputCellTests(unittest.TestCase):
    def test_touch_moves_forward(self) -> None:
        cell = LastInputCell(initial=T0)

        cell.touch(T0 + timedelta(seconds=5))

        self.assertEqual(cell.get(), T0 + timedelta(seconds=5))

    def test_older_timestamp_is_ignored(self) -> None:
        cell = LastInputCell(initial=T0 + timedelta(seconds=10))

        cell.touch(T0)

        self.assertEqual(cell.get(), T0 + timedelta(seconds=10))

    def test_touch_without_argument_uses_clock(self) -> None:
        later = T0 + timedelta(minutes=1)
        cell = LastInputCell(initial=T0, clock=lambda: later)

        cell.touch()

        self.assertEqual(cell.get(), later)


class PynputInputMonitorTests(unittest.TestCase):
    def test_missing_backend_reports_constant_activity(self) -> None:
        now = T0 + timedelta(hours=2)
        monitor = PynputInputMonitor(LastInputCell(initial=T0), clock=lambda: now)

        with mock.patch.dict(sys.modules, {"pynput": None}):
            with self.assertLogs("hustle_tracker.activity", level="WARNING"):
                monitor.start()

        self.assertFalse(monitor.available)
        self.assertEqual(monitor.last_input_time(), now)

    def test_events_touch_the_cell(self) -> None:
        later = T0 + timedelta(seconds=30)
        cell = LastInputCell(initial=T0, clock=lambda: later)
        monitor = PynputInputMonitor(cell, clock=lambda: later)

        monitor._on_event(10, 20)

        self.assertEqual(cell.get(), later)

    def test_detect_input_monitor_on_linux(self) -> None:
        self.assertIsInstance(detect_input_monitor("linux"), PynputInputMonitor)


if __name__ == "__main__":
    unittest.main()
