"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from portfolio_backend.analytics import AnalyticsService
from portfolio_backend.auth import TokenVerifier, measure_clock_skew
from portfolio_backend.cache import Cache, InMemoryCache, RedisCache
from portfolio_backend.config import get_settings
from portfolio_backend.contact import ContactInbox
from portfolio_backend.content import CarouselRepository, ContentService
from portfolio_backend.firebase import get_firebase_app
from portfolio_backend.images import (
    CLOUDINARY,
    IMAGEKIT,
    CloudinaryImageHost,
    ImageKitImageHost,
    ImageService,
    InMemoryImageHost,
)
from portfolio_backend.mailer import InMemoryMailer, Mailer, SmtpMailer
from portfolio_backend.notifications import NotificationService
from portfolio_backend.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from portfolio_backend.search import SearchService
from portfolio_backend.store import (
    FirebaseRecordStore,
    InMemoryRecordStore,
    RecordStore,
    SqlRecordStore,
)

logger = logging.getLogger(__name__)

_record_store: RecordStore | None = None
_backup_store: RecordStore | None = None
_cache: Cache | None = None
_image_service: ImageService | None = None
_content_service: ContentService | None = None
_search_service: SearchService | None = None
_analytics_service: AnalyticsService | None = None
_contact_inbox: ContactInbox | None = None
_mailer: Mailer | None = None
_mailer_resolved = False
_notification_service: NotificationService | None = None
_queue_client: JobQueue | None = None
_token_verifier: TokenVerifier | None = None


def get_backup_store() -> RecordStore:
    """
    Return the local store: SQLAlchemy over ``database_url`` (SQLite by default).
    """
    global _backup_store
    if _backup_store:
        return _backup_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _backup_store = InMemoryRecordStore()
    else:
        _backup_store = SqlRecordStore(settings.local_database_url)
    return _backup_store


def get_record_store() -> RecordStore:
    """
    Return the primary store so content persists across requests.

    Firebase Realtime Database when configured, otherwise the local store.
    """
    global _record_store
    if _record_store:
        return _record_store

    settings = get_settings()
    firebase_app = None if settings.use_in_memory_backends else get_firebase_app(settings)
    if firebase_app is not None:
        _record_store = FirebaseRecordStore(app=firebase_app)
    else:
        _record_store = get_backup_store()
    return _record_store


def get_cache() -> Cache:
    global _cache
    if _cache:
        return _cache

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _cache = RedisCache(
            url=settings.redis_url,
            prefix=settings.cache_key_prefix,
            default_ttl=settings.cache_default_ttl_seconds,
        )
    else:
        _cache = InMemoryCache(
            prefix=settings.cache_key_prefix,
            default_ttl=settings.cache_default_ttl_seconds,
        )
    return _cache


def get_image_service() -> ImageService:
    global _image_service
    if _image_service:
        return _image_service

    settings = get_settings()
    if settings.use_in_memory_backends:
        hosts = {
            CLOUDINARY: InMemoryImageHost(service=CLOUDINARY),
            IMAGEKIT: InMemoryImageHost(
                service=IMAGEKIT, base_url="https://ik.imagekit.io/demo"
            ),
        }
    else:
        hosts = {}
        if settings.cloudinary_configured:
            hosts[CLOUDINARY] = CloudinaryImageHost(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
            )
        if settings.imagekit_configured:
            hosts[IMAGEKIT] = ImageKitImageHost(
                public_key=settings.imagekit_public_key,
                private_key=settings.imagekit_private_key,
                url_endpoint=settings.imagekit_url_endpoint,
            )
        if not hosts:
            logger.warning("No image hosting service configured; uploads will fail")
    _image_service = ImageService(hosts)
    return _image_service


def get_content_service() -> ContentService:
    global _content_service
    if _content_service:
        return _content_service

    store = get_record_store()
    backup = get_backup_store()
    carousel = CarouselRepository(
        store,
        backup=backup if backup is not store else None,
        images=get_image_service(),
    )
    _content_service = ContentService(store, carousel=carousel)
    return _content_service


def get_search_service() -> SearchService:
    global _search_service
    if _search_service:
        return _search_service
    _search_service = SearchService(get_record_store(), get_cache())
    return _search_service


def get_analytics_service() -> AnalyticsService:
    global _analytics_service
    if _analytics_service:
        return _analytics_service
    _analytics_service = AnalyticsService(get_record_store(), get_cache())
    return _analytics_service


def get_mailer() -> Mailer | None:
    """
    Return the SMTP mailer, or None when SMTP is not configured.
    """
    global _mailer, _mailer_resolved
    if _mailer_resolved:
        return _mailer

    settings = get_settings()
    if settings.use_in_memory_backends:
        _mailer = InMemoryMailer()
    elif settings.smtp_configured:
        _mailer = SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    else:
        _mailer = None
    _mailer_resolved = True
    return _mailer


def get_contact_inbox() -> ContactInbox:
    global _contact_inbox
    if _contact_inbox:
        return _contact_inbox

    settings = get_settings()
    _contact_inbox = ContactInbox(
        get_record_store(),
        get_cache(),
        mailer=get_mailer(),
        notify_address=settings.contact_email or settings.smtp_user,
        send_auto_reply=settings.send_auto_reply,
        site_name=settings.site_name,
    )
    return _contact_inbox


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for handing notifications to the worker.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.notification_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service:
        return _notification_service
    _notification_service = NotificationService(
        get_record_store(),
        get_cache(),
        get_queue_client(),
        mailer=get_mailer(),
    )
    return _notification_service


def get_token_verifier() -> TokenVerifier:
    global _token_verifier
    if _token_verifier:
        return _token_verifier

    settings = get_settings()
    firebase_app = None if settings.use_in_memory_backends else get_firebase_app(settings)
    skew = measure_clock_skew() if firebase_app is not None else 0
    _token_verifier = TokenVerifier(
        settings=settings, firebase_app=firebase_app, clock_skew_seconds=int(skew)
    )
    return _token_verifier


def reset_dependencies() -> None:
    """Drop every singleton so the next call rebuilds it from settings."""
    global _record_store, _backup_store, _cache, _image_service, _content_service
    global _search_service, _analytics_service, _contact_inbox, _mailer
    global _mailer_resolved, _notification_service, _queue_client, _token_verifier
    _record_store = None
    _backup_store = None
    _cache = None
    _image_service = None
    _content_service = None
    _search_service = None
    _analytics_service = None
    _contact_inbox = None
    _mailer = None
    _mailer_resolved = False
    _notification_service = None
    _queue_client = None
    _token_verifier = None
