"""Shared fixtures for the API and service tests."""

import io
import json
import os
from unittest.mock import patch

from PIL import Image

from portfolio_backend.auth import issue_token
from portfolio_backend.config import get_settings
from portfolio_backend.dependencies import reset_dependencies

ADMIN_EMAIL = "owner@example.com"

TEST_ENVIRONMENT = {
    "USE_IN_MEMORY_BACKENDS": "true",
    "ENVIRONMENT": "development",
    "ADMIN_EMAILS": json.dumps([ADMIN_EMAIL]),
    "JWT_SECRET": "unit-test-secret-that-is-long-enough-for-hs256",
    "REDIS_URL": "",
    "FIREBASE_WEB_API_KEY": "",
    "FIREBASE_DATABASE_URL": "",
}


def reset_backends() -> None:
    get_settings.cache_clear()
    reset_dependencies()


def use_test_settings(testcase) -> None:
    """Point settings at in-memory backends for the duration of a test."""
    patcher = patch.dict(os.environ, TEST_ENVIRONMENT)
    patcher.start()
    testcase.addCleanup(patcher.stop)
    testcase.addCleanup(reset_backends)
    reset_backends()


def auth_headers(*, uid="admin-1", email=ADMIN_EMAIL, admin=False) -> dict:
    token = issue_token(uid=uid, email=email, admin=admin, settings=get_settings())
    return {"Authorization": f"Bearer {token}"}


def image_bytes(width=12, height=8, format="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 40)).save(buffer, format=format)
    return buffer.getvalue()
