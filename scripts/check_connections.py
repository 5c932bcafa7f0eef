"""
Check the external services the backend is configured to use.

Pings Cloudinary, validates the Firebase Realtime Database URL, and reports
which ImageKit and SMTP settings are present.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio_backend.config import Settings, get_settings
from portfolio_backend.images import CloudinaryImageHost

logger = logging.getLogger(__name__)

FIREBASE_URL_RE = re.compile(
    r"^https://[\w-]+(-[a-z0-9]+)?\.(firebaseio\.com|[a-z0-9-]+\.firebasedatabase\.app)/?$"
)


def _present(value) -> str:
    return "present" if value else "missing"


def check_cloudinary(settings: Settings) -> bool:
    logger.info("Cloudinary cloud name: %s", settings.cloudinary_cloud_name or "missing")
    logger.info("Cloudinary API key: %s", _present(settings.cloudinary_api_key))
    logger.info("Cloudinary API secret: %s", _present(settings.cloudinary_api_secret))
    if not settings.cloudinary_configured:
        logger.warning("Cloudinary is not configured")
        return False
    host = CloudinaryImageHost(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )
    try:
        result = host.ping()
    except Exception as exc:
        logger.error("Cloudinary connection failed: %s", exc)
        return False
    logger.info("Cloudinary connection successful: %s", result["response"].get("status"))
    return True


def check_firebase(settings: Settings) -> bool:
    url = settings.firebase_database_url
    logger.info("Firebase database URL: %s", url or "missing")
    if not url:
        return False
    if not FIREBASE_URL_RE.match(url):
        logger.error("Firebase database URL format is invalid")
        return False
    logger.info("Firebase database URL format is valid")
    return True


def check_imagekit(settings: Settings) -> bool:
    logger.info("ImageKit public key: %s", _present(settings.imagekit_public_key))
    logger.info("ImageKit private key: %s", _present(settings.imagekit_private_key))
    logger.info("ImageKit URL endpoint: %s", settings.imagekit_url_endpoint or "missing")
    return settings.imagekit_configured


def check_smtp(settings: Settings) -> bool:
    logger.info("SMTP host: %s:%s", settings.smtp_host or "missing", settings.smtp_port)
    logger.info("SMTP user: %s", _present(settings.smtp_user))
    logger.info("SMTP password: %s", _present(settings.smtp_password))
    return settings.smtp_configured


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check external service configuration.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when any service is missing or failing.",
    )
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    results = {
        "cloudinary": check_cloudinary(settings),
        "firebase": check_firebase(settings),
        "imagekit": check_imagekit(settings),
        "smtp": check_smtp(settings),
    }
    for name, ok in results.items():
        logger.info("%-10s %s", name, "ok" if ok else "not ready")
    if args.strict and not all(results.values()):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
