"""
Background worker: delivers queued notifications and runs periodic upkeep.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from portfolio_backend.config import get_settings
from portfolio_backend.dependencies import (
    get_contact_inbox,
    get_notification_service,
    get_queue_client,
    get_search_service,
)
from portfolio_backend.notifications import NotificationService
from portfolio_backend.queue import JobQueue

logger = logging.getLogger(__name__)

MAINTENANCE_INTERVAL_SECONDS = 3600


def process_next(
    *,
    notifications: Optional[NotificationService] = None,
    queue: Optional[JobQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Deliver one queued notification. Returns True if one was processed.
    """
    notifications = notifications or get_notification_service()
    queue = queue or get_queue_client()

    notification_id = queue.dequeue(block=block, timeout=timeout)
    if not notification_id:
        return False
    delivered = notifications.deliver(notification_id)
    if delivered is None:
        return False
    logger.info("[%s] Notification %s", notification_id, delivered["status"])
    return True


def run_maintenance() -> dict:
    """
    Drop expired contact messages and rewrite the stored search index.

    The API process owns analytics and index updates, so the index is reloaded
    before it is saved.
    """
    report = {}
    try:
        report["contactsRemoved"] = get_contact_inbox().cleanup()
    except Exception:
        logger.exception("Contact cleanup failed")
    try:
        search = get_search_service()
        search.load()
        search.save()
        report["searchDocuments"] = len(search.documents)
    except Exception:
        logger.exception("Saving search index failed")
    return report


def run_loop(
    poll_interval_seconds: float = 2.0,
    maintenance_interval_seconds: float = MAINTENANCE_INTERVAL_SECONDS,
) -> None:
    """
    Block on the queue and deliver notifications. Intended to be run under systemd/supervisor.
    """
    notifications = get_notification_service()
    queue = get_queue_client()
    last_maintenance = time.monotonic()
    while True:
        if time.monotonic() - last_maintenance >= maintenance_interval_seconds:
            logger.info("Maintenance: %s", run_maintenance())
            last_maintenance = time.monotonic()
        processed = process_next(
            notifications=notifications,
            queue=queue,
            block=True,
            timeout=int(poll_interval_seconds),
        )
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level)
    run_loop()
