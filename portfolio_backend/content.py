"""
Portfolio content: record collections, single documents, and the carousel.

Collections are thin wrappers over a ``RecordStore`` that stamp audit fields
and apply the per-collection ordering the site expects.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import TYPE_CHECKING, Callable, Optional

from portfolio_backend.store import RecordStore
from portfolio_backend.timeutils import utc_now_iso

if TYPE_CHECKING:
    from portfolio_backend.images import ImageService

logger = logging.getLogger(__name__)

PROJECTS = "projects"
CASE_STUDIES = "caseStudies"
CAROUSEL_IMAGES = "carouselImages"
SKILLS = "skills"
TESTIMONIALS = "testimonials"
TIMELINE = "timeline"
USERS = "users"
CONTACT_MESSAGES = "contactMessages"

DEFAULT_CAROUSEL_TITLE = "Magical Journey"
DEFAULT_CAROUSEL_SPEED = 5000
DEFAULT_CAROUSEL_ORDER = 999

DEFAULT_SECTIONS = {
    "about": {
        "title": "About Me",
        "description": "Professional portfolio showcasing my work and skills",
        "image": "/images/profile.jpg",
    },
    "skills": [],
    "timeline": [],
    "testimonials": [],
}

DEFAULT_CAROUSEL_SETTINGS = {
    "title": DEFAULT_CAROUSEL_TITLE,
    "speed": DEFAULT_CAROUSEL_SPEED,
    "autoplay": True,
    "indicators": True,
}

_TAG_RE = re.compile(r"<[^>]*>")


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _created_at_key(record: dict):
    return str(record.get("createdAt") or "")


def _order_key(record: dict):
    # Zero and missing both count as "unordered".
    return _as_int(record.get("order"), DEFAULT_CAROUSEL_ORDER) or DEFAULT_CAROUSEL_ORDER


def _year_key(record: dict):
    return _as_int(record.get("year"), 0)


def sort_carousel_images(images: list[dict]) -> list[dict]:
    return sorted(images, key=_order_key)


class Collection:
    """CRUD over one named collection in a record store."""

    def __init__(
        self,
        store: RecordStore,
        name: str,
        *,
        sort_key: Optional[Callable[[dict], object]] = None,
        reverse: bool = False,
    ):
        self.store = store
        self.name = name
        self.sort_key = sort_key
        self.reverse = reverse

    def list(self) -> list[dict]:
        records = self.store.list_records(self.name)
        if self.sort_key is None:
            return records
        return sorted(records, key=self.sort_key, reverse=self.reverse)

    def get(self, record_id: str) -> Optional[dict]:
        return self.store.get_record(self.name, record_id)

    def create(self, data: dict, user_id: Optional[str] = None) -> dict:
        return self.put(self.store.new_id(self.name), data, user_id)

    def put(self, record_id: str, data: dict, user_id: Optional[str] = None) -> dict:
        """Store a new record under an id chosen by the caller."""
        now = utc_now_iso()
        record = {
            **data,
            "id": record_id,
            "createdAt": now,
            "updatedAt": now,
            "createdBy": user_id or "system",
        }
        self.store.put_record(self.name, record_id, record)
        return record

    def update(
        self, record_id: str, updates: dict, user_id: Optional[str] = None
    ) -> Optional[dict]:
        existing = self.store.get_record(self.name, record_id)
        if existing is None:
            return None
        record = {
            **existing,
            **updates,
            "id": record_id,
            "updatedAt": utc_now_iso(),
            "updatedBy": user_id or "system",
        }
        self.store.put_record(self.name, record_id, record)
        return record

    def delete(self, record_id: str) -> bool:
        return self.store.delete_record(self.name, record_id)

    def find_by(self, field: str, value) -> Optional[dict]:
        for record in self.store.list_records(self.name):
            if record.get(field) == value:
                return record
        return None


class CaseStudyCollection(Collection):
    """Case studies keep the linked project's ``hasCaseStudy`` flag in sync."""

    def __init__(self, store: RecordStore, projects: Collection):
        super().__init__(store, CASE_STUDIES)
        self.projects = projects

    def create(self, data: dict, user_id: Optional[str] = None) -> dict:
        record = super().create(data, user_id)
        project_id = record.get("projectId")
        if project_id:
            self.projects.update(
                project_id,
                {"hasCaseStudy": True, "caseStudyId": record["id"]},
                user_id,
            )
        return record

    def delete(self, record_id: str, user_id: Optional[str] = None) -> bool:
        existing = self.get(record_id)
        if existing and existing.get("projectId"):
            self.projects.update(
                existing["projectId"],
                {"hasCaseStudy": False, "caseStudyId": None},
                user_id,
            )
        return super().delete(record_id)


class SingletonDocument:
    """
    A single JSON document (contact info, about page, site settings...).

    ``merge`` documents are shallow-merged on update; the rest are replaced.
    """

    def __init__(
        self,
        store: RecordStore,
        key: str,
        *,
        merge: bool = False,
        default: Optional[dict] = None,
    ):
        self.store = store
        self.key = key
        self.merge = merge
        self.default = default or {}

    def get(self) -> dict:
        document = self.store.get_document(self.key)
        if document is None:
            return copy.deepcopy(self.default)
        return document

    def update(self, data: dict, user_id: Optional[str] = None) -> dict:
        base = (self.store.get_document(self.key) or {}) if self.merge else {}
        document = {
            **base,
            **data,
            "updatedAt": utc_now_iso(),
            "updatedBy": user_id or "system",
        }
        self.store.set_document(self.key, document)
        return document


class CarouselSettingsDocument(SingletonDocument):
    def __init__(self, store: RecordStore):
        super().__init__(store, "carouselSettings", default=DEFAULT_CAROUSEL_SETTINGS)

    def update(self, data: dict, user_id: Optional[str] = None) -> dict:
        document = normalize_carousel_settings(data)
        self.store.set_document(self.key, document)
        return document


def normalize_carousel_settings(data: dict) -> dict:
    return {
        "title": data.get("title") or DEFAULT_CAROUSEL_TITLE,
        "speed": _as_int(data.get("speed"), DEFAULT_CAROUSEL_SPEED)
        or DEFAULT_CAROUSEL_SPEED,
        "autoplay": data.get("autoplay") is not False,
        "indicators": data.get("indicators") is not False,
        "updatedAt": utc_now_iso(),
    }


def _strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value)


def standardize_case_study(record: dict) -> dict:
    """
    Fill the ``project*`` display fields from legacy field names.

    Stored fields win; the fallbacks only apply where a field is absent.
    """
    sections = record.get("sections") or {}
    hero = sections.get("hero") or {}
    overview = sections.get("overview") or {}
    overview_text = overview.get("content")
    overview_excerpt = _strip_tags(overview_text)[:100] if overview_text else ""

    standardized = {
        "projectTitle": record.get("projectTitle")
        or record.get("title")
        or hero.get("headline")
        or "Untitled Project",
        "projectDescription": record.get("projectDescription")
        or record.get("summary")
        or overview_excerpt
        or "",
        "projectImageUrl": record.get("projectImageUrl")
        or record.get("coverImageUrl")
        or record.get("imageUrl")
        or "",
        "projectCategory": record.get("projectCategory")
        or record.get("category")
        or "Case Study",
        "projectRating": record.get("projectRating") or record.get("rating") or 5,
        "projectAchievement": record.get("projectAchievement") or "",
    }
    return {**standardized, **record}


def repair_case_study(record_id: str, record: dict) -> tuple[dict, list[str]]:
    """
    Return a repaired copy of a stored case study and the names of the
    fields that were filled in.
    """
    repaired = copy.deepcopy(record)
    fixed: list[str] = []
    sections = repaired.get("sections") or {}
    hero = sections.get("hero") or {}
    overview = sections.get("overview") or {}

    if not repaired.get("projectTitle"):
        repaired["projectTitle"] = (
            hero.get("headline") or repaired.get("title") or "Untitled Case Study"
        )
        fixed.append("projectTitle")

    if not repaired.get("projectDescription"):
        description = hero.get("text") or overview.get("summary")
        if description:
            repaired["projectDescription"] = description
            fixed.append("projectDescription")

    if not repaired.get("projectImageUrl"):
        gallery = (sections.get("gallery") or {}).get("images") or []
        first = gallery[0] if gallery else None
        image_url = (first or {}).get("url") if isinstance(first, dict) else first
        image_url = image_url or repaired.get("imageUrl")
        if image_url:
            repaired["projectImageUrl"] = image_url
            fixed.append("projectImageUrl")

    if not repaired.get("projectUrl") and repaired.get("url"):
        repaired["projectUrl"] = repaired["url"]
        fixed.append("projectUrl")

    if not repaired.get("id"):
        repaired["id"] = record_id
        fixed.append("id")

    if "sections" not in repaired or repaired["sections"] is None:
        repaired["sections"] = {}
        fixed.append("sections")

    now = utc_now_iso()
    if not repaired.get("createdAt"):
        repaired["createdAt"] = now
        fixed.append("createdAt")
    if fixed:
        repaired["updatedAt"] = now
    return repaired, fixed


def filter_projects(
    projects: list[dict],
    *,
    featured: Optional[bool] = None,
    category: Optional[str] = None,
    technology: Optional[str] = None,
    status: Optional[str] = None,
) -> list[dict]:
    results = projects
    if featured is not None:
        results = [p for p in results if bool(p.get("featured")) == featured]
    if category:
        results = [p for p in results if p.get("category") == category]
    if status:
        results = [p for p in results if p.get("status") == status]
    if technology:
        needle = technology.lower()
        results = [
            p
            for p in results
            if any(needle in str(t).lower() for t in p.get("technologies") or [])
        ]
    return results


class CarouselRepository:
    """
    Carousel images with a primary store and an optional local backup.

    Reads come from the primary and fall back to the backup when the primary
    errors or has nothing. Writes land in both.
    """

    def __init__(
        self,
        primary: RecordStore,
        backup: Optional[RecordStore] = None,
        images: Optional["ImageService"] = None,
    ):
        self.primary = primary
        self.backup = backup
        self.images = images

    @property
    def _local(self) -> Collection:
        return Collection(self.backup or self.primary, CAROUSEL_IMAGES)

    def list(self) -> list[dict]:
        records: list[dict] = []
        if self.backup is not None:
            try:
                records = self.primary.list_records(CAROUSEL_IMAGES)
            except Exception:
                logger.exception("Primary carousel read failed, using local data")
        if not records:
            records = self._local.list()
        return sort_carousel_images(records)

    def get(self, image_id: str) -> Optional[dict]:
        if self.backup is not None:
            try:
                record = self.primary.get_record(CAROUSEL_IMAGES, image_id)
                if record:
                    return record
            except Exception:
                logger.exception("Primary carousel lookup failed for %s", image_id)
        return self._local.get(image_id)

    def create(self, data: dict, user_id: Optional[str] = None) -> dict:
        if self.backup is None:
            return self._local.create(data, user_id)
        try:
            record_id = self.primary.new_id(CAROUSEL_IMAGES)
        except Exception:
            logger.exception("Reserving a carousel id in primary store failed")
            return self._local.create(data, user_id)
        # Both stores hold the record under the same id.
        record = self._local.put(record_id, data, user_id)
        try:
            self.primary.put_record(CAROUSEL_IMAGES, record_id, record)
        except Exception:
            logger.exception("Saving carousel image to primary store failed")
        return record

    def update(
        self, image_id: str, updates: dict, user_id: Optional[str] = None
    ) -> Optional[dict]:
        if self.backup is not None:
            try:
                current = self.primary.get_record(CAROUSEL_IMAGES, image_id)
                if current:
                    record = {
                        **current,
                        **updates,
                        "id": image_id,
                        "updatedAt": utc_now_iso(),
                    }
                    self.primary.put_record(CAROUSEL_IMAGES, image_id, record)
                    return record
            except Exception:
                logger.exception("Updating carousel image %s in primary failed", image_id)
        return self._local.update(image_id, updates, user_id)

    def delete(self, image_id: str) -> Optional[dict]:
        """Remove an image everywhere. Returns the removed record, or None."""
        record = self.get(image_id)
        if record is None:
            return None
        if record.get("publicId") and self.images is not None:
            try:
                self.images.delete(record["publicId"], record.get("service") or "cloudinary")
            except Exception:
                logger.exception(
                    "Deleting hosted image %s failed, removing the record anyway",
                    record["publicId"],
                )
        if self.backup is not None:
            try:
                self.primary.delete_record(CAROUSEL_IMAGES, image_id)
            except Exception:
                logger.exception("Deleting carousel image %s from primary failed", image_id)
        self._local.delete(image_id)
        return record


class ContentService:
    """Every collection and document the site serves, over one store."""

    def __init__(
        self,
        store: RecordStore,
        *,
        carousel: Optional[CarouselRepository] = None,
    ):
        self.store = store
        self.projects = Collection(store, PROJECTS, sort_key=_created_at_key, reverse=True)
        self.case_studies = CaseStudyCollection(store, self.projects)
        self.skills = Collection(store, SKILLS)
        self.testimonials = Collection(store, TESTIMONIALS)
        self.timeline = Collection(store, TIMELINE, sort_key=_year_key, reverse=True)
        self.users = Collection(store, USERS)
        self.contact_messages = Collection(store, CONTACT_MESSAGES)
        self.carousel = carousel or CarouselRepository(store)

        self.contact = SingletonDocument(store, "contact")
        self.about = SingletonDocument(store, "about")
        self.settings = SingletonDocument(store, "settings")
        self.sections = SingletonDocument(
            store, "sections", merge=True, default=DEFAULT_SECTIONS
        )
        self.carousel_settings = CarouselSettingsDocument(store)

    def project_categories(self) -> list[str]:
        return sorted({p["category"] for p in self.projects.list() if p.get("category")})

    def project_technologies(self) -> list[str]:
        technologies = set()
        for project in self.projects.list():
            technologies.update(str(t) for t in project.get("technologies") or [] if t)
        return sorted(technologies)

    def snapshot(self) -> dict:
        """Content used to build the search index."""
        return {
            PROJECTS: self.projects.list(),
            SKILLS: self.skills.list(),
            CASE_STUDIES: [standardize_case_study(cs) for cs in self.case_studies.list()],
        }
