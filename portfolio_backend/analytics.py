"""
Visitor analytics: event tracking and summary reports.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from datetime import timedelta
from typing import Optional

from portfolio_backend.cache import Cache
from portfolio_backend.store import RecordStore, generate_id
from portfolio_backend.timeutils import parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

ANALYTICS_DOCUMENT_KEY = "analytics"
SUMMARY_CACHE_PREFIX = "analytics:summary:"
SUMMARY_TTL_SECONDS = 3600
PERSISTED_EVENT_LIMIT = 1000
MAX_EVENTS_IN_MEMORY = 10000
AUTOSAVE_INTERVAL_SECONDS = 300
RETENTION_DAYS = 30
REALTIME_WINDOW = timedelta(minutes=5)

PAGE_VIEW = "page_view"
PROJECT_VIEW = "project_view"


def parse_browser(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "Unknown"
    if "Chrome" in user_agent:
        return "Chrome"
    if "Firefox" in user_agent:
        return "Firefox"
    if "Safari" in user_agent and "Chrome" not in user_agent:
        return "Safari"
    if "Edge" in user_agent:
        return "Edge"
    if "Opera" in user_agent:
        return "Opera"
    return "Other"


def _ip(event: dict) -> Optional[str]:
    return (event.get("context") or {}).get("ip")


def top_pages(events: list[dict], limit: int = 10) -> list[dict]:
    counts = Counter(
        (event.get("properties") or {}).get("page") or "unknown"
        for event in events
        if event["type"] == PAGE_VIEW
    )
    return [{"page": page, "views": views} for page, views in counts.most_common(limit)]


def top_projects(events: list[dict], limit: int = 10) -> list[dict]:
    counts = Counter(
        (event.get("properties") or {}).get("projectId") or "unknown"
        for event in events
        if event["type"] == PROJECT_VIEW
    )
    return [
        {"projectId": project_id, "views": views}
        for project_id, views in counts.most_common(limit)
    ]


def daily_stats(events: list[dict]) -> list[dict]:
    days: dict[str, dict] = {}
    for event in events:
        date = parse_timestamp(event["timestamp"]).date().isoformat()
        day = days.setdefault(
            date, {"date": date, "events": 0, "pageViews": 0, "visitors": set()}
        )
        day["events"] += 1
        if event["type"] == PAGE_VIEW:
            day["pageViews"] += 1
        if _ip(event):
            day["visitors"].add(_ip(event))
    return [
        {
            "date": day["date"],
            "events": day["events"],
            "pageViews": day["pageViews"],
            "uniqueVisitors": len(day["visitors"]),
        }
        for _, day in sorted(days.items())
    ]


def browser_stats(events: list[dict]) -> list[dict]:
    counts = Counter(
        parse_browser((event.get("context") or {}).get("userAgent")) for event in events
    )
    return [{"browser": browser, "count": count} for browser, count in counts.most_common()]


class AnalyticsService:
    """
    Keeps recent events in memory and persists them through the record store.

    The owning process saves every ``autosave_interval_seconds``, dropping events
    older than the retention window as it does.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: Cache,
        *,
        autosave_interval_seconds: float = AUTOSAVE_INTERVAL_SECONDS,
        max_events: int = MAX_EVENTS_IN_MEMORY,
    ):
        self.store = store
        self.cache = cache
        self.autosave_interval_seconds = autosave_interval_seconds
        self.max_events = max_events
        self._last_saved = time.monotonic()
        self.events: list[dict] = []
        self.page_views: Counter = Counter()
        self.visitors: set[str] = set()
        self._lock = threading.Lock()
        self.load()

    def load(self) -> None:
        stored = self.store.get_document(ANALYTICS_DOCUMENT_KEY) or {}
        with self._lock:
            self.events = list(stored.get("events") or [])
            self.page_views = Counter(dict(stored.get("pageViews") or {}))
            self.visitors = set(stored.get("visitors") or [])

    def save(self) -> None:
        with self._lock:
            payload = {
                "events": self.events[-PERSISTED_EVENT_LIMIT:],
                "pageViews": dict(self.page_views),
                "visitors": sorted(self.visitors),
                "lastSaved": utc_now_iso(),
            }
        self.store.set_document(ANALYTICS_DOCUMENT_KEY, payload)
        self._last_saved = time.monotonic()

    def track_event(
        self,
        event_type: str,
        properties: Optional[dict] = None,
        context: Optional[dict] = None,
    ) -> dict:
        context = {k: v for k, v in (context or {}).items() if v is not None}
        event = {
            "id": generate_id(),
            "type": event_type,
            "properties": properties or {},
            "context": context,
            "timestamp": utc_now_iso(),
        }
        with self._lock:
            self.events.append(event)
            if len(self.events) > self.max_events:
                del self.events[: -self.max_events]
            if context.get("ip"):
                self.visitors.add(context["ip"])
            if event_type == PAGE_VIEW and event["properties"].get("page"):
                self.page_views[event["properties"]["page"]] += 1
        self.cache.delete_pattern(f"{SUMMARY_CACHE_PREFIX}*")
        logger.debug("Tracked analytics event %s", event_type)
        self._autosave()
        return event

    def _autosave(self) -> None:
        if time.monotonic() - self._last_saved < self.autosave_interval_seconds:
            return
        # Next attempt waits a full interval even if this one fails.
        self._last_saved = time.monotonic()
        try:
            self.cleanup(RETENTION_DAYS)
        except Exception:
            logger.exception("Periodic analytics save failed")

    def track_page_view(self, page: str, context: Optional[dict] = None) -> dict:
        return self.track_event(PAGE_VIEW, {"page": page}, context)

    def track_project_view(self, project_id: str, context: Optional[dict] = None) -> dict:
        return self.track_event(PROJECT_VIEW, {"projectId": project_id}, context)

    def _events_since(self, cutoff) -> list[dict]:
        with self._lock:
            events = list(self.events)
        return [e for e in events if parse_timestamp(e["timestamp"]) > cutoff]

    def summary(self, days: int = 30) -> dict:
        return self.cache.get_or_set(
            f"{SUMMARY_CACHE_PREFIX}{days}",
            lambda: self._build_summary(days),
            ttl=SUMMARY_TTL_SECONDS,
        )

    def _build_summary(self, days: int) -> dict:
        recent = self._events_since(utc_now() - timedelta(days=days))
        return {
            "totalEvents": len(recent),
            "uniqueVisitors": len({_ip(e) for e in recent if _ip(e)}),
            "pageViews": sum(1 for e in recent if e["type"] == PAGE_VIEW),
            "projectViews": sum(1 for e in recent if e["type"] == PROJECT_VIEW),
            "topPages": top_pages(recent),
            "topProjects": top_projects(recent),
            "dailyStats": daily_stats(recent),
            "browserStats": browser_stats(recent),
        }

    def realtime(self) -> dict:
        recent = self._events_since(utc_now() - REALTIME_WINDOW)
        return {
            "activeUsers": len({_ip(e) for e in recent if _ip(e)}),
            "recentEvents": list(reversed(recent[-20:])),
            "currentPageViews": top_pages(recent, 5),
        }

    def top_pages(self, limit: int = 10) -> list[dict]:
        with self._lock:
            events = list(self.events)
        return top_pages(events, limit)

    def top_projects(self, limit: int = 10) -> list[dict]:
        with self._lock:
            events = list(self.events)
        return top_projects(events, limit)

    def cleanup(self, days: int = RETENTION_DAYS) -> int:
        """Drop events older than ``days``. Returns how many were removed."""
        cutoff = utc_now() - timedelta(days=days)
        with self._lock:
            before = len(self.events)
            self.events = [
                e for e in self.events if parse_timestamp(e["timestamp"]) > cutoff
            ]
            removed = before - len(self.events)
        self.save()
        logger.info("Analytics cleanup removed %d events", removed)
        return removed
