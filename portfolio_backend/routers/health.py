"""
Liveness and dependency health routes.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends

from portfolio_backend.cache import Cache
from portfolio_backend.dependencies import (
    get_cache,
    get_image_service,
    get_queue_client,
    get_record_store,
)
from portfolio_backend.images import ImageService
from portfolio_backend.queue import JobQueue
from portfolio_backend.store import RecordStore
from portfolio_backend.timeutils import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()

STARTED_AT = time.monotonic()


def _check(name: str, probe) -> dict:
    try:
        return probe()
    except Exception as exc:
        logger.warning("Health check %s failed: %s", name, exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("/status")
def status():
    return {"status": "online"}


@router.get("/health")
def health(
    store: RecordStore = Depends(get_record_store),
    images: ImageService = Depends(get_image_service),
    cache: Cache = Depends(get_cache),
    queue: JobQueue = Depends(get_queue_client),
):
    services = {
        "store": _check("store", store.ping),
        "images": _check("images", images.status),
        "cache": _check("cache", cache.ping),
        "queue": _check("queue", lambda: {"status": "healthy", "pending": queue.size()}),
    }
    unhealthy = [
        name for name, report in services.items() if report.get("status") == "unhealthy"
    ]
    return {
        "status": "degraded" if unhealthy else "healthy",
        "services": services,
        "uptime": round(time.monotonic() - STARTED_AT, 1),
        "timestamp": utc_now_iso(),
    }
