import unittest
from datetime import timedelta
from pathlib import Path

from hustle_tracker.config import TrackerSettings, db_path_from_env
from hustle_tracker.errors import ConfigurationError


class TrackerSettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = TrackerSettings()

        self.assertEqual(settings.poll_interval, timedelta(milliseconds=100))
        self.assertEqual(settings.afk_threshold, timedelta(minutes=5))
        self.assertEqual(settings.idle_threshold, timedelta(minutes=10))
        self.assertEqual(settings.autosave_interval, timedelta(hours=1))

    def test_idle_threshold_derived_from_afk(self) -> None:
        self.assertEqual(
            TrackerSettings.from_intervals(afk_seconds=900).idle_threshold,
            timedelta(seconds=1800),
        )
        self.assertEqual(
            TrackerSettings.from_intervals(afk_seconds=60).idle_threshold,
            timedelta(seconds=600),
        )

    def test_from_env_reads_prefixed_variables(self) -> None:
        settings = TrackerSettings.from_env(
            {
                "HUSTLE_TRACKER_POLL_MS": "250",
                "HUSTLE_TRACKER_AFK_SECONDS": "120",
                "HUSTLE_TRACKER_AUTOSAVE_SECONDS": "60",
            }
        )

        self.assertEqual(settings.poll_interval, timedelta(milliseconds=250))
        self.assertEqual(settings.afk_threshold, timedelta(seconds=120))
        self.assertEqual(settings.idle_threshold, timedelta(seconds=600))
        self.assertEqual(settings.autosave_interval, timedelta(seconds=60))

    def test_from_env_without_variables_uses_defaults(self) -> None:
        self.assertEqual(TrackerSettings.from_env({}), TrackerSettings())

    def test_non_numeric_variable_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            TrackerSettings.from_env({"HUSTLE_TRACKER_AFK_SECONDS": "five"})

    def test_idle_shorter_than_afk_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            TrackerSettings.from_intervals(afk_seconds=600, idle_seconds=300)

    def test_non_positive_interval_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            TrackerSettings.from_intervals(poll_ms=0)


class DbPathFromEnvTests(unittest.TestCase):
    def test_path_is_expanded(self) -> None:
        path = db_path_from_env({"HUSTLE_TRACKER_DB": "~/tracker.sqlite3"})

        self.assertIsInstance(path, Path)
        self.assertEqual(path.name, "tracker.sqlite3")
        self.assertNotIn("~", str(path))

    def test_blank_value_is_ignored(self) -> None:
        self.assertIsNone(db_path_from_env({"HUSTLE_TRACKER_DB": "  "}))
        self.assertIsNone(db_path_from_env({}))


if __name__ == "__main__":
    unittest.main()
