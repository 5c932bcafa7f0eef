"""
Contact form inbox: validation, rate limiting, storage, and mail notices.
"""

from __future__ import annotations

import html
import logging
import re
from collections import Counter
from datetime import timedelta
from typing import Optional

from portfolio_backend.cache import Cache
from portfolio_backend.content import CONTACT_MESSAGES, Collection
from portfolio_backend.mailer import Mailer
from portfolio_backend.store import RecordStore, generate_id
from portfolio_backend.timeutils import parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
RATE_LIMIT_SECONDS = 300
RETENTION_DAYS = 365
DEFAULT_SUBJECT = "Contact Form Submission"
THANK_YOU_MESSAGE = "Thank you for your message! I'll get back to you soon."


class ContactValidationError(ValueError):
    pass


class RateLimitedError(Exception):
    pass


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ContactInbox:
    def __init__(
        self,
        store: RecordStore,
        cache: Cache,
        *,
        mailer: Optional[Mailer] = None,
        notify_address: Optional[str] = None,
        send_auto_reply: bool = False,
        site_name: str = "Portfolio Owner",
    ):
        self.store = store
        self.messages = Collection(store, CONTACT_MESSAGES)
        self.cache = cache
        self.mailer = mailer
        self.notify_address = notify_address
        self.send_auto_reply = send_auto_reply
        self.site_name = site_name

    def submit(self, form: dict) -> dict:
        """
        Validate and store a submission, then send the notification mail.

        Raises ContactValidationError for bad input and RateLimitedError when
        the same address submitted within the last five minutes.
        """
        name = _clean(form.get("name"))
        email = _clean(form.get("email"))
        message = _clean(form.get("message"))
        if not name or not email or not message:
            raise ContactValidationError("Name, email, and message are required")
        if not EMAIL_RE.match(email):
            raise ContactValidationError("Invalid email format")

        email = email.lower()
        rate_key = f"contact:{email}"
        if self.cache.get(rate_key) is not None:
            raise RateLimitedError("Please wait before submitting another message")

        record_id = generate_id()
        record = {
            "id": record_id,
            "name": name,
            "email": email,
            "subject": _clean(form.get("subject")) or DEFAULT_SUBJECT,
            "message": message,
            "phone": _clean(form.get("phone")),
            "company": _clean(form.get("company")),
            "timestamp": utc_now_iso(),
            "status": "new",
            "ip": form.get("ip"),
            "userAgent": form.get("userAgent"),
        }
        self.store.put_record(CONTACT_MESSAGES, record_id, record)
        self.cache.set(rate_key, record["timestamp"], RATE_LIMIT_SECONDS)

        if self.mailer is not None:
            try:
                self._send_notification(record)
                record["emailSent"] = True
            except Exception as exc:
                logger.exception("Contact notification mail failed")
                record["emailError"] = str(exc)
            if self.send_auto_reply:
                try:
                    self._send_auto_reply(record)
                    record["autoReplySent"] = True
                except Exception:
                    logger.exception("Contact auto-reply failed")
            self.store.put_record(CONTACT_MESSAGES, record_id, record)

        logger.info("Contact form submitted by %s (%s)", name, email)
        return {"id": record_id, "message": THANK_YOU_MESSAGE, "timestamp": record["timestamp"]}

    def _send_notification(self, record: dict) -> None:
        lines = [
            "New Contact Form Submission",
            "",
            f"Name: {record['name']}",
            f"Email: {record['email']}",
        ]
        if record.get("phone"):
            lines.append(f"Phone: {record['phone']}")
        if record.get("company"):
            lines.append(f"Company: {record['company']}")
        lines += [
            f"Subject: {record['subject']}",
            "",
            "Message:",
            record["message"],
            "",
            f"Submitted: {record['timestamp']}",
            f"IP: {record.get('ip') or 'Unknown'}",
        ]
        body = html.escape(record["message"]).replace("\n", "<br>")
        rich = (
            "<h2>New Contact Form Submission</h2>"
            f"<p><strong>Name:</strong> {html.escape(record['name'])}</p>"
            f"<p><strong>Email:</strong> {html.escape(record['email'])}</p>"
            f"<p><strong>Subject:</strong> {html.escape(record['subject'])}</p>"
            f"<div>{body}</div>"
        )
        self.mailer.send(
            self.notify_address,
            f"Portfolio Contact: {record['subject']}",
            "\n".join(lines),
            rich,
        )

    def _send_auto_reply(self, record: dict) -> None:
        text = (
            f"Thank you for your message, {record['name']}!\n\n"
            "I've received your message and will get back to you as soon as possible.\n\n"
            f"Subject: {record['subject']}\n{record['message']}\n\n"
            f"Best regards,\n{self.site_name}\n\n"
            "---\nThis is an automated response. Please do not reply to this email."
        )
        self.mailer.send(record["email"], "Thank you for contacting me!", text)

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> dict:
        contacts = self.messages.list()
        if status:
            contacts = [c for c in contacts if c.get("status") == status]
        contacts.sort(key=lambda c: parse_timestamp(c["timestamp"]), reverse=True)
        return {
            "contacts": contacts[offset : offset + limit],
            "total": len(contacts),
            "limit": limit,
            "offset": offset,
        }

    def get(self, contact_id: str) -> Optional[dict]:
        return self.messages.get(contact_id)

    def update_status(self, contact_id: str, status: str) -> Optional[dict]:
        record = self.messages.get(contact_id)
        if record is None:
            return None
        record = {**record, "status": status, "updatedAt": utc_now_iso()}
        self.store.put_record(CONTACT_MESSAGES, contact_id, record)
        return record

    def stats(self, days: int = 30) -> dict:
        cutoff = utc_now() - timedelta(days=days)
        recent = [
            c for c in self.messages.list() if parse_timestamp(c["timestamp"]) > cutoff
        ]
        statuses = Counter(c.get("status") for c in recent)
        daily = Counter(parse_timestamp(c["timestamp"]).date().isoformat() for c in recent)
        responded = statuses.get("responded", 0)
        return {
            "totalContacts": len(recent),
            "statusBreakdown": dict(statuses),
            "dailyStats": [{"date": d, "count": daily[d]} for d in sorted(daily)],
            "responseRate": (responded / len(recent)) * 100 if recent else 0,
        }

    def cleanup(self) -> int:
        cutoff = utc_now() - timedelta(days=RETENTION_DAYS)
        removed = 0
        for record in self.messages.list():
            if parse_timestamp(record["timestamp"]) <= cutoff:
                self.messages.delete(record["id"])
                removed += 1
        if removed:
            logger.info("Cleaned up %d old contact messages", removed)
        return removed
