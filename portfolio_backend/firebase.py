"""
Firebase Admin initialization shared by the record store and auth.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from portfolio_backend.config import Settings

logger = logging.getLogger(__name__)

_lock = threading.Lock()


def _credential_for(settings: Settings):
    if settings.firebase_credentials_path:
        return credentials.Certificate(settings.firebase_credentials_path)
    return credentials.Certificate(
        {
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "client_email": settings.firebase_client_email,
            "private_key": settings.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    )


def get_firebase_app(settings: Settings) -> Optional[firebase_admin.App]:
    """
    Return the default Firebase app, initializing it on first use.

    Returns None when Firebase is not configured.
    """
    if not settings.firebase_configured:
        return None
    with _lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass
        options = {"databaseURL": settings.firebase_database_url}
        if settings.firebase_project_id:
            options["projectId"] = settings.firebase_project_id
        app = firebase_admin.initialize_app(_credential_for(settings), options)
        logger.info("Firebase Admin initialized for %s", settings.firebase_database_url)
        return app
