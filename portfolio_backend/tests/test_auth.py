import os
import unittest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import jwt
import requests

from portfolio_backend.auth import (
    AuthenticatedUser,
    AuthError,
    DuplicateUserError,
    SigningKeyMissingError,
    TokenVerifier,
    check_password,
    hash_password,
    is_admin,
    issue_token,
    login,
    measure_clock_skew,
    register_user,
)
from portfolio_backend.config import Settings
from portfolio_backend.content import ContentService
from portfolio_backend.store import InMemoryRecordStore

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def make_settings(**overrides) -> Settings:
    values = {"jwt_secret": SECRET, "admin_emails": ["owner@example.com"]}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class PasswordTests(unittest.TestCase):
    def test_hash_and_check(self):
        hashed = hash_password("correct horse")
        self.assertNotEqual(hashed, "correct horse")
        self.assertTrue(check_password("correct horse", hashed))
        self.assertFalse(check_password("wrong", hashed))

    def test_non_bcrypt_values(self):
        self.assertFalse(check_password("secret", None))
        self.assertFalse(check_password("secret", "secret"))


class TokenTests(unittest.TestCase):
    def setUp(self):
        self.settings = make_settings()
        self.verifier = TokenVerifier(settings=self.settings)

    def test_round_trip(self):
        token = issue_token(uid="u1", email="a@example.com", admin=True, settings=self.settings)
        user = self.verifier.verify(token)
        self.assertEqual(user, AuthenticatedUser(uid="u1", email="a@example.com", admin=True))

    def test_wrong_secret(self):
        other = make_settings(jwt_secret="another-secret-that-is-also-long-enough")
        token = issue_token(uid="u1", email=None, admin=False, settings=other)
        with self.assertRaises(AuthError):
            self.verifier.verify(token)

    def test_expired(self):
        token = jwt.encode(
            {"uid": "u1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(AuthError):
            self.verifier.verify(token)

    def test_legacy_id_claim(self):
        token = jwt.encode({"id": 42, "email": "a@example.com"}, SECRET, algorithm="HS256")
        self.assertEqual(self.verifier.verify(token).uid, "42")

    def test_token_without_subject(self):
        token = jwt.encode({"email": "a@example.com"}, SECRET, algorithm="HS256")
        with self.assertRaises(AuthError):
            self.verifier.verify(token)

    def test_garbage(self):
        with self.assertRaises(AuthError):
            self.verifier.verify("not-a-token")

    def test_secret_defaults_to_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(Settings(_env_file=None).jwt_secret)

    def test_unset_secret_rejects_tokens(self):
        verifier = TokenVerifier(settings=make_settings(jwt_secret=None))
        forged = jwt.encode({"uid": "attacker", "admin": True}, "change-me", algorithm="HS256")
        with self.assertRaises(AuthError):
            verifier.verify(forged)

    def test_unset_secret_cannot_issue(self):
        with self.assertRaises(SigningKeyMissingError):
            issue_token(uid="u1", email=None, admin=True, settings=make_settings(jwt_secret=""))


class AdminTests(unittest.TestCase):
    def test_claim_or_allowlist(self):
        allow = ["owner@example.com"]
        self.assertTrue(is_admin(AuthenticatedUser(uid="1", admin=True), allow))
        self.assertTrue(is_admin(AuthenticatedUser(uid="2", email="owner@example.com"), allow))
        self.assertFalse(is_admin(AuthenticatedUser(uid="3", email="guest@example.com"), allow))
        self.assertFalse(is_admin(AuthenticatedUser(uid="4"), allow))


class LoginTests(unittest.TestCase):
    def setUp(self):
        self.users = ContentService(InMemoryRecordStore()).users
        self.settings = make_settings()
        self.user = register_user(
            self.users, email=" Owner@Example.com ", password="s3cret-pass", name="Owner"
        )

    def test_register_normalizes_and_hides_password(self):
        self.assertEqual(self.user["email"], "owner@example.com")
        self.assertNotIn("password", self.user)
        stored = self.users.get(self.user["id"])
        self.assertTrue(check_password("s3cret-pass", stored["password"]))

    def test_register_duplicate(self):
        with self.assertRaises(DuplicateUserError):
            register_user(self.users, email="owner@example.com", password="x" * 8)

    def test_login_with_stored_hash(self):
        result = login("OWNER@example.com", "s3cret-pass", users=self.users, settings=self.settings)
        self.assertEqual(result["user"]["email"], "owner@example.com")
        self.assertTrue(result["user"]["isAdmin"])
        user = TokenVerifier(settings=self.settings).verify(result["token"])
        self.assertEqual(user.uid, self.user["id"])
        self.assertTrue(user.admin)

    def test_login_wrong_password(self):
        with self.assertRaises(AuthError):
            login("owner@example.com", "nope", users=self.users, settings=self.settings)

    def test_login_unknown_user(self):
        with self.assertRaises(AuthError):
            login("ghost@example.com", "s3cret-pass", users=self.users, settings=self.settings)

    def test_login_prefers_firebase_when_configured(self):
        settings = make_settings(firebase_web_api_key="web-key")
        response = MagicMock()
        response.json.return_value = {"idToken": "firebase-id-token"}
        session = MagicMock()
        session.post.return_value = response

        result = login("owner@example.com", "anything", users=self.users, settings=settings, session=session)
        self.assertEqual(result["token"], "firebase-id-token")
        _, kwargs = session.post.call_args
        self.assertEqual(kwargs["params"], {"key": "web-key"})

    def test_login_falls_back_when_firebase_fails(self):
        settings = make_settings(firebase_web_api_key="web-key")
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("offline")

        result = login("owner@example.com", "s3cret-pass", users=self.users, settings=settings, session=session)
        self.assertNotEqual(result["token"], "firebase-id-token")
        with self.assertRaises(AuthError):
            login("owner@example.com", "wrong", users=self.users, settings=settings, session=session)


class ClockSkewTests(unittest.TestCase):
    def test_measures_offset_from_date_header(self):
        response = MagicMock()
        remote = datetime.now(timezone.utc) + timedelta(seconds=120)
        response.headers = {"Date": format_datetime(remote, usegmt=True)}
        session = MagicMock()
        session.head.return_value = response
        self.assertAlmostEqual(measure_clock_skew(session=session), 120, delta=2)

    def test_failure_returns_zero(self):
        session = MagicMock()
        session.head.side_effect = requests.Timeout("slow")
        self.assertEqual(measure_clock_skew(session=session), 0.0)


if __name__ == "__main__":
    unittest.main()
