import tempfile
import threading
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from hustle_tracker.config import TrackerSettings
from hustle_tracker.db import database_connection, insert_session, start_of_day
from hustle_tracker.models import Session, local_now
from hustle_tracker.webapp import TrackerRunner, create_app


class FakeTracker:
    def __init__(self) -> None:
        self.started = threading.Event()

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        self.started.set()
        stop_event.wait(5)

    def snapshot(self) -> Session:
        return Session(app_name="firefox", start_time=local_now(), duration=12)


class WebAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.db_path = Path(tmp.name) / "sessions.sqlite3"
        start = start_of_day(local_now())
        with database_connection(self.db_path) as conn:
            insert_session(
                conn,
                Session(
                    app_name="firefox",
                    start_time=start,
                    duration=120,
                    browser_page_title="GitHub - repo",
                    browser_url="GitHub",
                    category="🌐 Browsing",
                ),
            )
            insert_session(
                conn,
                Session(app_name="AFK", start_time=start, duration=600, is_afk=True, is_idle=True),
            )
        self.client = TestClient(create_app(db_path=self.db_path, run_tracker=False))


class StatusEndpointTests(WebAppTestCase):
    def test_status_without_tracker(self) -> None:
        response = self.client.get("/api/status")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertFalse(payload["tracker_running"])
        self.assertIsNone(payload["current_session"])
        self.assertEqual(payload["afk_seconds"], 300.0)
        self.assertEqual(payload["database_path"], str(self.db_path))


class SessionEndpointTests(WebAppTestCase):
    def test_daily_sessions(self) -> None:
        response = self.client.get("/api/sessions", params={"period": "daily"})

        self.assertEqual(response.status_code, 200)
        sessions = response.json()["sessions"]
        self.assertEqual({s["app_name"] for s in sessions}, {"firefox", "AFK"})
        self.assertIn("end_time", sessions[0])

    def test_unknown_period(self) -> None:
        response = self.client.get("/api/sessions", params={"period": "yearly"})

        self.assertEqual(response.status_code, 400)

    def test_usage_excludes_afk(self) -> None:
        payload = self.client.get("/api/usage").json()

        self.assertEqual(payload["active_seconds"], 120)
        self.assertEqual(payload["afk_seconds"], 600)
        self.assertEqual(payload["idle_seconds"], 600)
        self.assertEqual(payload["items"][0]["display_name"], "firefox")
        self.assertEqual(payload["items"][1]["display_name"], "└─ GitHub - repo")
        self.assertEqual(payload["all_time_apps"], [{"app_name": "firefox", "seconds": 120}])

    def test_breakdown(self) -> None:
        response = self.client.get("/api/breakdown/browser")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["rows"][0], {"label": "GitHub", "seconds": 120})
        self.assertEqual(self.client.get("/api/breakdown/files").json()["rows"], [])
        self.assertEqual(self.client.get("/api/breakdown/unknown").status_code, 404)


class OverrideEndpointTests(WebAppTestCase):
    def test_rename_app(self) -> None:
        response = self.client.post(
            "/api/overrides",
            json={"field_type": "app_name", "original_value": "firefox", "renamed_value": "Firefox"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["sessions_updated"], 1)
        overrides = self.client.get("/api/overrides").json()["overrides"]
        self.assertEqual(overrides[0]["renamed_value"], "Firefox")
        usage = self.client.get("/api/usage").json()
        self.assertEqual(usage["items"][0]["display_name"], "Firefox")

    def test_categorize_field_adds_custom_category(self) -> None:
        response = self.client.post(
            "/api/overrides",
            json={
                "field_type": "browser_page_title",
                "original_value": "GitHub - repo",
                "category": "Deep Work",
            },
        )

        self.assertEqual(response.status_code, 200)
        categories = self.client.get("/api/categories").json()
        self.assertEqual(categories["custom"], ["Deep Work"])
        self.assertIn("🌐 Browsing", categories["default"])

    def test_invalid_payloads(self) -> None:
        unknown_field = self.client.post(
            "/api/overrides",
            json={"field_type": "window_name", "original_value": "x", "renamed_value": "y"},
        )
        missing_values = self.client.post(
            "/api/overrides",
            json={"field_type": "app_name", "original_value": "firefox"},
        )
        extra_key = self.client.post(
            "/api/overrides",
            json={"field_type": "app_name", "original_value": "firefox", "color": "red"},
        )

        self.assertEqual(unknown_field.status_code, 400)
        self.assertEqual(missing_values.status_code, 400)
        self.assertEqual(extra_key.status_code, 422)


class TrackerRunnerTests(unittest.TestCase):
    def test_start_and_stop(self) -> None:
        tracker = FakeTracker()
        runner = TrackerRunner(Path("unused.sqlite3"), TrackerSettings(), lambda *_: tracker)

        runner.start()
        self.assertTrue(tracker.started.wait(2))
        self.assertTrue(runner.is_running())
        self.assertEqual(runner.current_session().duration, 12)

        runner.stop()
        self.assertFalse(runner.is_running())

    def test_no_session_before_start(self) -> None:
        runner = TrackerRunner(Path("unused.sqlite3"), TrackerSettings(), lambda *_: FakeTracker())

        self.assertIsNone(runner.current_session())
        runner.stop()


if __name__ == "__main__":
    unittest.main()
