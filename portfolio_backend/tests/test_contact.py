import unittest
from unittest.mock import MagicMock

from portfolio_backend.cache import InMemoryCache
from portfolio_backend.contact import (
    CONTACT_MESSAGES,
    ContactInbox,
    ContactValidationError,
    RateLimitedError,
)
from portfolio_backend.mailer import InMemoryMailer
from portfolio_backend.store import InMemoryRecordStore

FORM = {
    "name": "Ada",
    "email": "Ada@Example.com",
    "message": "Hello <there>\nSecond line",
    "company": "Engines Ltd",
}


class ContactInboxTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryRecordStore()
        self.mailer = InMemoryMailer()
        self.inbox = ContactInbox(
            self.store, InMemoryCache(), mailer=self.mailer, notify_address="owner@example.com"
        )

    def test_submit_stores_and_notifies(self):
        result = self.inbox.submit(dict(FORM))
        record = self.inbox.get(result["id"])
        self.assertEqual(record["email"], "ada@example.com")
        self.assertEqual(record["subject"], "Contact Form Submission")
        self.assertEqual(record["status"], "new")
        self.assertTrue(record["emailSent"])
        self.assertIsNone(record["phone"])

        self.assertEqual(len(self.mailer.outbox), 1)
        mail = self.mailer.outbox[0]
        self.assertEqual(mail["to"], "owner@example.com")
        self.assertEqual(mail["subject"], "Portfolio Contact: Contact Form Submission")
        self.assertIn("Company: Engines Ltd", mail["text"])
        self.assertIn("Hello &lt;there&gt;<br>Second line", mail["html"])

    def test_required_fields(self):
        with self.assertRaisesRegex(ContactValidationError, "required"):
            self.inbox.submit({"name": "Ada", "email": "ada@example.com", "message": "  "})

    def test_invalid_email(self):
        with self.assertRaisesRegex(ContactValidationError, "Invalid email"):
            self.inbox.submit({**FORM, "email": "not-an-email"})

    def test_rate_limited_per_address(self):
        self.inbox.submit(dict(FORM))
        with self.assertRaises(RateLimitedError):
            self.inbox.submit({**FORM, "email": "ada@example.com"})
        self.inbox.submit({**FORM, "email": "grace@example.com"})
        self.assertEqual(len(self.store.list_records(CONTACT_MESSAGES)), 2)

    def test_auto_reply(self):
        self.inbox.send_auto_reply = True
        result = self.inbox.submit(dict(FORM))
        self.assertEqual([m["to"] for m in self.mailer.outbox], ["owner@example.com", "ada@example.com"])
        self.assertTrue(self.inbox.get(result["id"])["autoReplySent"])

    def test_mail_failure_keeps_message(self):
        failing = MagicMock()
        failing.send.side_effect = OSError("smtp down")
        inbox = ContactInbox(self.store, InMemoryCache(), mailer=failing)
        result = inbox.submit(dict(FORM))
        record = inbox.get(result["id"])
        self.assertEqual(record["emailError"], "smtp down")
        self.assertNotIn("emailSent", record)

    def test_without_mailer(self):
        inbox = ContactInbox(self.store, InMemoryCache())
        result = inbox.submit(dict(FORM))
        self.assertNotIn("emailSent", inbox.get(result["id"]))

    def _put(self, record_id, timestamp, status="new"):
        self.store.put_record(
            CONTACT_MESSAGES,
            record_id,
            {"id": record_id, "timestamp": timestamp, "status": status, "email": "x@example.com"},
        )

    def test_list_newest_first_with_filter(self):
        self._put("a", "2024-01-01T00:00:00Z")
        self._put("b", "2024-03-01T00:00:00Z", status="read")
        self._put("c", "2024-02-01T00:00:00Z")
        listing = self.inbox.list()
        self.assertEqual([c["id"] for c in listing["contacts"]], ["b", "c", "a"])
        self.assertEqual(listing["total"], 3)
        self.assertEqual([c["id"] for c in self.inbox.list(status="new")["contacts"]], ["c", "a"])
        self.assertEqual([c["id"] for c in self.inbox.list(limit=1, offset=1)["contacts"]], ["c"])

    def test_update_status(self):
        self._put("a", "2024-01-01T00:00:00Z")
        self.assertEqual(self.inbox.update_status("a", "responded")["status"], "responded")
        self.assertEqual(self.inbox.get("a")["status"], "responded")
        self.assertIsNone(self.inbox.update_status("missing", "read"))

    def test_stats(self):
        self.inbox.submit(dict(FORM))
        result = self.inbox.submit({**FORM, "email": "grace@example.com"})
        self.inbox.update_status(result["id"], "responded")
        stats = self.inbox.stats()
        self.assertEqual(stats["totalContacts"], 2)
        self.assertEqual(stats["statusBreakdown"], {"new": 1, "responded": 1})
        self.assertEqual(stats["responseRate"], 50)

    def test_cleanup_removes_old_messages(self):
        self._put("old", "2000-01-01T00:00:00Z")
        self.inbox.submit(dict(FORM))
        self.assertEqual(self.inbox.cleanup(), 1)
        self.assertIsNone(self.inbox.get("old"))
        self.assertEqual(self.inbox.list()["total"], 1)


if __name__ == "__main__":
    unittest.main()
