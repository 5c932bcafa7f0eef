"""
User notifications: templates, preferences, queued multi-channel delivery.

``send`` only records a pending notification and queues its id; the worker
calls ``deliver`` to push it through each channel.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Optional

import requests

from portfolio_backend.cache import Cache
from portfolio_backend.mailer import Mailer
from portfolio_backend.queue import JobQueue
from portfolio_backend.store import RecordStore, generate_id
from portfolio_backend.timeutils import parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
PREFERENCES = "notificationPreferences"
TEMPLATES = "notificationTemplates"

AVAILABLE_CHANNELS = ("email", "push", "webhook")
PREFERENCES_TTL_SECONDS = 86400

CATEGORY_BY_TYPE = {
    "security_alert": "security",
    "password_changed": "security",
    "login_attempt": "security",
    "system_update": "updates",
    "feature_announcement": "updates",
    "contact_received": "updates",
    "newsletter": "marketing",
    "promotion": "marketing",
}

DEFAULT_TEMPLATES = {
    "welcome": {
        "id": "welcome",
        "name": "Welcome Email",
        "subject": "Welcome to {{siteName}}!",
        "htmlContent": "<h1>Welcome {{userName}}!</h1><p>Thanks for joining {{siteName}}.</p>",
        "textContent": "Welcome {{userName}}! Thanks for joining {{siteName}}.",
        "variables": ["userName", "siteName"],
    },
    "contact_received": {
        "id": "contact_received",
        "name": "New Contact Message",
        "subject": "New message from {{name}}",
        "htmlContent": "<p><strong>{{name}}</strong> ({{email}}) wrote:</p><p>{{message}}</p>",
        "textContent": "{{name}} ({{email}}) wrote: {{message}}",
        "variables": ["name", "email", "message"],
    },
    "security_alert": {
        "id": "security_alert",
        "name": "Security Alert",
        "subject": "Security alert: {{event}}",
        "htmlContent": "<p>We noticed <strong>{{event}}</strong> on your account at {{time}}.</p>",
        "textContent": "We noticed {{event}} on your account at {{time}}.",
        "variables": ["event", "time"],
    },
}

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def default_preferences(user_id: str) -> dict:
    return {
        "userId": user_id,
        "channels": {"email": True, "push": True, "webhook": False},
        "frequency": "immediate",
        "categories": {"security": True, "updates": True, "marketing": False},
        "email": None,
        "webhookUrl": None,
    }


def render_template(text: str, variables: dict) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left as-is."""

    def replace(match: re.Match) -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)

    return _PLACEHOLDER_RE.sub(replace, text or "")


def resolve_channels(
    requested: Optional[list[str]], preferences: dict, notification_type: str
) -> list[str]:
    enabled = preferences.get("channels") or {}
    category = CATEGORY_BY_TYPE.get(notification_type)
    if category and not (preferences.get("categories") or {}).get(category, True):
        return []
    candidates = requested if requested is not None else list(AVAILABLE_CHANNELS)
    return [c for c in candidates if c in AVAILABLE_CHANNELS and enabled.get(c)]


class NotificationService:
    def __init__(
        self,
        store: RecordStore,
        cache: Cache,
        queue: JobQueue,
        *,
        mailer: Optional[Mailer] = None,
        http=requests,
    ):
        self.store = store
        self.cache = cache
        self.queue = queue
        self.mailer = mailer
        self.http = http

    # Templates

    def get_template(self, template_id: str) -> dict:
        stored = self.store.get_record(TEMPLATES, template_id)
        if stored:
            return stored
        if template_id in DEFAULT_TEMPLATES:
            return dict(DEFAULT_TEMPLATES[template_id])
        raise KeyError(f"Template {template_id} not found")

    def create_template(self, template: dict) -> dict:
        template = {
            "id": template["id"],
            "name": template.get("name") or template["id"],
            "subject": template.get("subject") or "",
            "htmlContent": template.get("htmlContent") or "",
            "textContent": template.get("textContent") or "",
            "variables": list(template.get("variables") or []),
        }
        self.store.put_record(TEMPLATES, template["id"], template)
        return template

    # Preferences

    def stored_preferences(self, user_id: str) -> dict:
        """Preferences read from the store, skipping the cache."""
        return self.store.get_record(PREFERENCES, user_id) or default_preferences(user_id)

    def get_preferences(self, user_id: str) -> dict:
        return self.cache.get_or_set(
            f"notification_preferences:{user_id}",
            lambda: self.stored_preferences(user_id),
            ttl=PREFERENCES_TTL_SECONDS,
        )

    def update_preferences(self, user_id: str, updates: dict) -> dict:
        current = self.stored_preferences(user_id)
        merged = {**current, **updates, "userId": user_id}
        for nested in ("channels", "categories"):
            if isinstance(updates.get(nested), dict):
                merged[nested] = {**(current.get(nested) or {}), **updates[nested]}
        self.store.put_record(PREFERENCES, user_id, merged)
        self.cache.set(
            f"notification_preferences:{user_id}", merged, PREFERENCES_TTL_SECONDS
        )
        return merged

    # Sending

    def send(
        self,
        user_id: str,
        notification_type: str,
        *,
        title: str = "",
        message: str = "",
        template_id: Optional[str] = None,
        variables: Optional[dict] = None,
        channels: Optional[list[str]] = None,
    ) -> Optional[dict]:
        """
        Record a pending notification and queue it for delivery.

        Returns None when the user's preferences leave no channel to use.
        """
        preferences = self.get_preferences(user_id)
        resolved = resolve_channels(channels, preferences, notification_type)
        if not resolved:
            logger.info(
                "No channels enabled for user %s and type %s", user_id, notification_type
            )
            return None

        variables = variables or {}
        data = dict(variables)
        if template_id:
            template = self.get_template(template_id)
            title = render_template(template["subject"], variables)
            message = render_template(template["textContent"], variables)
            data["htmlContent"] = render_template(template["htmlContent"], variables)

        notification_id = f"notif_{generate_id()}"
        notification = {
            "id": notification_id,
            "userId": user_id,
            "type": notification_type,
            "title": title,
            "message": message,
            "data": data,
            "channels": resolved,
            "status": "pending",
            "createdAt": utc_now_iso(),
            "readAt": None,
        }
        self.store.put_record(NOTIFICATIONS, notification_id, notification)
        self.queue.enqueue(notification_id)
        return notification

    def send_bulk(self, user_ids: list[str], notification_type: str, **kwargs) -> list[str]:
        if kwargs.get("template_id"):
            # Unknown templates fail the whole batch with KeyError.
            self.get_template(kwargs["template_id"])
        sent: list[str] = []
        for user_id in user_ids:
            try:
                notification = self.send(user_id, notification_type, **kwargs)
            except Exception:
                logger.exception("Sending notification to user %s failed", user_id)
                continue
            if notification:
                sent.append(notification["id"])
        return sent

    def deliver(self, notification_id: str) -> Optional[dict]:
        notification = self.store.get_record(NOTIFICATIONS, notification_id)
        if notification is None:
            logger.warning("Notification %s not found for delivery", notification_id)
            return None
        # Another process may have changed the address since this one cached it.
        preferences = self.stored_preferences(notification["userId"])
        try:
            for channel in notification["channels"]:
                self._deliver_via(channel, notification, preferences)
        except Exception as exc:
            logger.exception("Delivering notification %s failed", notification_id)
            notification["status"] = "failed"
            notification["error"] = str(exc)
        else:
            notification["status"] = "sent"
            notification["sentAt"] = utc_now_iso()
        self.store.put_record(NOTIFICATIONS, notification_id, notification)
        return notification

    def _deliver_via(self, channel: str, notification: dict, preferences: dict) -> None:
        if channel == "email":
            if self.mailer is None:
                raise RuntimeError("Email delivery is not configured")
            address = preferences.get("email")
            if not address:
                raise RuntimeError(f"No email address for user {notification['userId']}")
            self.mailer.send(
                address,
                notification["title"],
                notification["message"],
                (notification.get("data") or {}).get("htmlContent"),
            )
        elif channel == "webhook":
            url = preferences.get("webhookUrl")
            if not url:
                raise RuntimeError(f"No webhook URL for user {notification['userId']}")
            response = self.http.post(url, json=notification, timeout=10)
            response.raise_for_status()
        elif channel == "push":
            logger.info("Push notification %s (no push provider)", notification["id"])
        else:
            raise RuntimeError(f"Unknown channel type: {channel}")

    # Reading

    def _for_user(self, user_id: str) -> list[dict]:
        records = [
            n for n in self.store.list_records(NOTIFICATIONS) if n.get("userId") == user_id
        ]
        records.sort(key=lambda n: parse_timestamp(n["createdAt"]), reverse=True)
        return records

    def for_user(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        records = self._for_user(user_id)
        unread = [n for n in records if not n.get("readAt")]
        selected = unread if unread_only else records
        return {
            "notifications": selected[offset : offset + limit],
            "total": len(selected),
            "unreadCount": len(unread),
        }

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        notification = self.store.get_record(NOTIFICATIONS, notification_id)
        if notification is None or notification.get("userId") != user_id:
            return False
        if not notification.get("readAt"):
            notification["readAt"] = utc_now_iso()
            self.store.put_record(NOTIFICATIONS, notification_id, notification)
        return True

    def mark_all_read(self, user_id: str) -> int:
        now = utc_now_iso()
        count = 0
        for notification in self._for_user(user_id):
            if notification.get("readAt"):
                continue
            notification["readAt"] = now
            self.store.put_record(NOTIFICATIONS, notification["id"], notification)
            count += 1
        return count

    def statistics(self, start: datetime, end: datetime) -> dict:
        records = [
            n
            for n in self.store.list_records(NOTIFICATIONS)
            if start <= parse_timestamp(n["createdAt"]) <= end
        ]
        statuses = Counter(n.get("status") for n in records)
        types = Counter(n.get("type") for n in records)
        channels = Counter(c for n in records for c in n.get("channels") or [])
        failures = Counter(
            n["error"] for n in records if n.get("status") == "failed" and n.get("error")
        )
        sent = statuses.get("sent", 0) + statuses.get("delivered", 0)
        return {
            "total": len(records),
            "totalSent": sent,
            "deliveryRate": sent / len(records) if records else 0,
            "statusBreakdown": dict(statuses),
            "typeBreakdown": dict(types),
            "channelBreakdown": dict(channels),
            "failureReasons": dict(failures),
        }
