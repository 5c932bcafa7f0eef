import unittest
from unittest.mock import patch

from portfolio_backend.analytics import (
    ANALYTICS_DOCUMENT_KEY,
    AnalyticsService,
    parse_browser,
)
from portfolio_backend.cache import InMemoryCache
from portfolio_backend.store import InMemoryRecordStore

CHROME = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
FIREFOX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


class AnalyticsServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryRecordStore()
        self.service = AnalyticsService(self.store, InMemoryCache())

    def test_track_page_and_project_views(self):
        self.service.track_page_view("/", {"ip": "1.1.1.1", "userAgent": CHROME})
        self.service.track_page_view("/", {"ip": "2.2.2.2", "userAgent": FIREFOX})
        self.service.track_page_view("/about", {"ip": "1.1.1.1", "referrer": None})
        self.service.track_project_view("p1", {"ip": "1.1.1.1"})

        self.assertEqual(self.service.page_views["/"], 2)
        self.assertEqual(self.service.visitors, {"1.1.1.1", "2.2.2.2"})
        self.assertNotIn("referrer", self.service.events[2]["context"])
        self.assertEqual(self.service.top_pages(), [{"page": "/", "views": 2}, {"page": "/about", "views": 1}])
        self.assertEqual(self.service.top_projects(), [{"projectId": "p1", "views": 1}])

    def test_summary(self):
        self.service.track_page_view("/", {"ip": "1.1.1.1", "userAgent": CHROME})
        self.service.track_project_view("p1", {"ip": "2.2.2.2", "userAgent": FIREFOX})
        self.service.track_event("download_cv", {"file": "cv.pdf"})

        summary = self.service.summary(7)
        self.assertEqual(summary["totalEvents"], 3)
        self.assertEqual(summary["uniqueVisitors"], 2)
        self.assertEqual(summary["pageViews"], 1)
        self.assertEqual(summary["projectViews"], 1)
        self.assertEqual(len(summary["dailyStats"]), 1)
        self.assertEqual(summary["dailyStats"][0]["uniqueVisitors"], 2)
        browsers = {b["browser"]: b["count"] for b in summary["browserStats"]}
        self.assertEqual(browsers, {"Chrome": 1, "Firefox": 1, "Unknown": 1})

    def test_new_events_refresh_cached_summary(self):
        self.assertEqual(self.service.summary()["totalEvents"], 0)
        self.service.track_event("click")
        self.assertEqual(self.service.summary()["totalEvents"], 1)

    def test_realtime(self):
        self.service.track_page_view("/", {"ip": "1.1.1.1"})
        self.service.track_page_view("/work", {"ip": "1.1.1.1"})
        realtime = self.service.realtime()
        self.assertEqual(realtime["activeUsers"], 1)
        self.assertEqual(realtime["recentEvents"][0]["properties"]["page"], "/work")

    def test_cleanup_drops_old_events(self):
        self.service.track_event("recent")
        self.service.events.append(
            {
                "id": "old",
                "type": "page_view",
                "properties": {"page": "/"},
                "context": {},
                "timestamp": "2020-01-01T00:00:00Z",
            }
        )
        self.assertEqual(self.service.cleanup(days=30), 1)
        self.assertEqual([e["type"] for e in self.service.events], ["recent"])
        self.assertEqual(len(self.store.get_document(ANALYTICS_DOCUMENT_KEY)["events"]), 1)

    def test_save_and_reload(self):
        self.service.track_page_view("/", {"ip": "1.1.1.1"})
        self.service.save()
        reloaded = AnalyticsService(self.store, InMemoryCache())
        self.assertEqual(len(reloaded.events), 1)
        self.assertEqual(reloaded.page_views["/"], 1)
        self.assertEqual(reloaded.visitors, {"1.1.1.1"})

    def test_keeps_only_recent_events_in_memory(self):
        service = AnalyticsService(self.store, InMemoryCache(), max_events=3)
        for index in range(5):
            service.track_event("click", {"n": index})
        self.assertEqual([e["properties"]["n"] for e in service.events], [2, 3, 4])

    def test_no_save_before_interval(self):
        self.service.track_event("click")
        self.assertIsNone(self.store.get_document(ANALYTICS_DOCUMENT_KEY))

    def test_saves_once_interval_elapses(self):
        service = AnalyticsService(self.store, InMemoryCache(), autosave_interval_seconds=0)
        service.track_page_view("/", {"ip": "1.1.1.1"})
        stored = self.store.get_document(ANALYTICS_DOCUMENT_KEY)
        self.assertEqual(len(stored["events"]), 1)
        self.assertEqual(stored["pageViews"], {"/": 1})

    def test_failed_periodic_save_keeps_event(self):
        service = AnalyticsService(self.store, InMemoryCache(), autosave_interval_seconds=0)
        with patch.object(self.store, "set_document", side_effect=RuntimeError("offline")):
            event = service.track_event("click")
        self.assertEqual(service.events[-1], event)


class ParseBrowserTests(unittest.TestCase):
    def test_known_browsers(self):
        self.assertEqual(parse_browser(CHROME), "Chrome")
        self.assertEqual(parse_browser(FIREFOX), "Firefox")
        self.assertEqual(
            parse_browser("Mozilla/5.0 (Macintosh) AppleWebKit/605.1.15 Version/17.0 Safari/605.1.15"),
            "Safari",
        )
        self.assertEqual(parse_browser("curl/8.0"), "Other")
        self.assertEqual(parse_browser(None), "Unknown")


if __name__ == "__main__":
    unittest.main()
