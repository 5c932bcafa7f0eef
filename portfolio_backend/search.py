"""
Keyword search over portfolio content.

Scoring is plain term counting: each lower-cased query term earns weight for
a hit in the title, technologies, or category, plus capped per-occurrence
credit in the description. There is no inverted index; the corpus is a few
dozen documents.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Iterable, Optional

from portfolio_backend.cache import Cache
from portfolio_backend.store import RecordStore
from portfolio_backend.timeutils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

INDEX_DOCUMENT_KEY = "searchIndex"
CACHE_PREFIX = "search:"
CACHE_TTL_SECONDS = 30 * 60
HISTORY_LIMIT = 100
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
MIN_QUERY_LENGTH = 2

TITLE_WEIGHT = 20
TECHNOLOGY_WEIGHT = 10
CATEGORY_WEIGHT = 5
DESCRIPTION_CAP = 3
MAX_TERM_SCORE = TITLE_WEIGHT + TECHNOLOGY_WEIGHT + CATEGORY_WEIGHT + DESCRIPTION_CAP


@dataclass
class SearchDocument:
    id: str
    type: str
    title: str
    description: str = ""
    technologies: list[str] = field(default_factory=list)
    category: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "SearchDocument":
        return cls(
            id=str(data["id"]),
            type=data.get("type") or "project",
            title=data.get("title") or "",
            description=data.get("description") or "",
            technologies=[str(t) for t in data.get("technologies") or []],
            category=data.get("category") or "",
            url=data.get("url") or "",
        )

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_DOCUMENTS = [
    SearchDocument(
        id="project-1",
        type="project",
        title="E-commerce Platform",
        description="A full-stack e-commerce solution built with React and Node.js",
        technologies=["React", "Node.js", "MongoDB", "Express"],
        category="Web Development",
        url="/projects/ecommerce-platform",
    ),
    SearchDocument(
        id="project-2",
        type="project",
        title="Task Management App",
        description="A collaborative task management application with real-time updates",
        technologies=["Vue.js", "Firebase", "Vuetify"],
        category="Web Development",
        url="/projects/task-management",
    ),
    SearchDocument(
        id="skill-1",
        type="skill",
        title="JavaScript",
        description="Proficient in modern JavaScript ES6+, async/await, and functional programming",
        technologies=["JavaScript", "ES6+", "TypeScript"],
        category="Programming Languages",
        url="/skills#javascript",
    ),
    SearchDocument(
        id="skill-2",
        type="skill",
        title="React Development",
        description="Expert in React ecosystem including hooks, context, and state management",
        technologies=["React", "Redux", "React Router", "Hooks"],
        category="Frontend Frameworks",
        url="/skills#react",
    ),
]


def _slug(value: str) -> str:
    return "-".join(value.lower().split())


def documents_from_content(content: dict) -> list[SearchDocument]:
    """Build index documents from projects, skills, and case studies."""
    documents: list[SearchDocument] = []
    for project in content.get("projects", []):
        documents.append(
            SearchDocument(
                id=f"project-{project['id']}",
                type="project",
                title=project.get("title") or "",
                description=project.get("description") or "",
                technologies=[str(t) for t in project.get("technologies") or []],
                category=project.get("category") or "",
                url=f"/projects/{project['id']}",
            )
        )
    for skill in content.get("skills", []):
        name = skill.get("name") or skill.get("title") or ""
        documents.append(
            SearchDocument(
                id=f"skill-{skill['id']}",
                type="skill",
                title=name,
                description=skill.get("description") or "",
                technologies=[str(t) for t in skill.get("technologies") or [name] if t],
                category=skill.get("category") or "Skills",
                url=f"/skills#{_slug(name)}",
            )
        )
    for case_study in content.get("caseStudies", []):
        documents.append(
            SearchDocument(
                id=f"case-study-{case_study['id']}",
                type="case-study",
                title=case_study.get("projectTitle") or case_study.get("title") or "",
                description=case_study.get("projectDescription") or "",
                technologies=[str(t) for t in case_study.get("technologies") or []],
                category=case_study.get("projectCategory") or "Case Study",
                url=f"/case-studies/{case_study['id']}",
            )
        )
    return documents


def query_terms(query: str) -> list[str]:
    return query.lower().strip().split()


def score_document(document: SearchDocument, terms: list[str]) -> int:
    title = document.title.lower()
    technologies = " ".join(document.technologies).lower()
    category = document.category.lower()
    description = document.description.lower()

    score = 0
    for term in terms:
        if term in title:
            score += TITLE_WEIGHT
        if term in technologies:
            score += TECHNOLOGY_WEIGHT
        if term in category:
            score += CATEGORY_WEIGHT
        score += min(DESCRIPTION_CAP, description.count(term))
    return score


def highlights_for(document: SearchDocument, terms: list[str], limit: int = 3) -> list[str]:
    snippets: list[str] = []
    for value in (document.title, document.description):
        lowered = value.lower()
        for term in terms:
            start = lowered.find(term)
            while start != -1 and len(snippets) < limit:
                end = start + len(term)
                snippets.append(value[max(0, start - 20) : min(len(value), end + 20)])
                start = lowered.find(term, end)
            if len(snippets) >= limit:
                return snippets
    return snippets


def _facets(documents: Iterable[SearchDocument]) -> dict:
    types: Counter = Counter()
    categories: Counter = Counter()
    technologies: Counter = Counter()
    for document in documents:
        types[document.type] += 1
        categories[document.category] += 1
        technologies.update(document.technologies)
    return {
        "types": [{"value": k, "count": v} for k, v in types.items()],
        "categories": [{"value": k, "count": v} for k, v in categories.items()],
        "technologies": [
            {"value": k, "count": v} for k, v in technologies.most_common(10)
        ],
    }


class SearchService:
    """In-process search index persisted through the record store."""

    def __init__(self, store: RecordStore, cache: Cache):
        self.store = store
        self.cache = cache
        self.documents: list[SearchDocument] = []
        self.history: list[dict] = []
        self._lock = threading.Lock()
        self.load()

    # Persistence

    def load(self) -> None:
        stored = self.store.get_document(INDEX_DOCUMENT_KEY)
        if stored and stored.get("documents") is not None:
            self.documents = [SearchDocument.from_dict(d) for d in stored["documents"]]
            self.history = list(stored.get("searchHistory") or [])[-HISTORY_LIMIT:]
            return
        logger.info("No stored search index, seeding default documents")
        self.documents = list(DEFAULT_DOCUMENTS)
        self.history = []
        self.save()

    def save(self) -> None:
        with self._lock:
            payload = {
                "documents": [d.to_dict() for d in self.documents],
                "searchHistory": self.history[-HISTORY_LIMIT:],
                "lastUpdated": utc_now().isoformat(),
            }
        self.store.set_document(INDEX_DOCUMENT_KEY, payload)

    def _invalidate(self) -> None:
        self.cache.delete_pattern(f"{CACHE_PREFIX}*")

    # Queries

    def search(
        self,
        query: str,
        *,
        type: Optional[str] = None,
        category: Optional[str] = None,
        technologies: Optional[list[str]] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict:
        query = query or ""
        if len(query.strip()) < MIN_QUERY_LENGTH:
            return {
                "results": [],
                "total": 0,
                "query": query,
                "suggestions": self.suggestions(""),
                "facets": _facets([]),
            }

        limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
        offset = max(0, offset or 0)
        self._track(query)

        options = {
            "type": type,
            "category": category,
            "technologies": sorted(technologies or []),
            "limit": limit,
            "offset": offset,
        }
        digest = hashlib.sha1(
            json.dumps([query, options], sort_keys=True).encode("utf-8")
        ).hexdigest()
        return self.cache.get_or_set(
            f"{CACHE_PREFIX}{digest}",
            lambda: self._run_search(query, **options),
            ttl=CACHE_TTL_SECONDS,
        )

    def _run_search(
        self,
        query: str,
        *,
        type: Optional[str],
        category: Optional[str],
        technologies: list[str],
        limit: int,
        offset: int,
    ) -> dict:
        terms = query_terms(query)
        best_possible = MAX_TERM_SCORE * len(terms)
        wanted_tech = [t.lower() for t in technologies]

        with self._lock:
            documents = list(self.documents)

        matches: list[tuple[int, SearchDocument]] = []
        for document in documents:
            if type and document.type != type:
                continue
            if category and document.category != category:
                continue
            if wanted_tech and not any(
                wanted in tech.lower()
                for tech in document.technologies
                for wanted in wanted_tech
            ):
                continue
            score = score_document(document, terms)
            if score > 0:
                matches.append((score, document))
        matches.sort(key=lambda item: item[0], reverse=True)

        page = matches[offset : offset + limit]
        results = [
            {
                **document.to_dict(),
                "score": round(100 * score / best_possible),
                "highlights": highlights_for(document, terms),
            }
            for score, document in page
        ]
        return {
            "results": results,
            "total": len(matches),
            "query": query,
            "suggestions": self.suggestions(query),
            "facets": _facets(document for _, document in matches),
        }

    def _track(self, query: str) -> None:
        with self._lock:
            self.history.append({"query": query.strip(), "timestamp": utc_now().isoformat()})
            if len(self.history) > HISTORY_LIMIT:
                self.history = self.history[-HISTORY_LIMIT:]
            should_save = len(self.history) % 10 == 0
        if should_save:
            self.save()

    def suggestions(self, query: str, limit: int = 5) -> list[str]:
        with self._lock:
            history = list(self.history)
            documents = list(self.documents)
        if not query:
            return [entry["query"] for entry in reversed(history[-limit:])]

        needle = query.lower()
        suggestions: list[str] = []

        def add(value: str) -> None:
            if value not in suggestions:
                suggestions.append(value)

        for document in documents:
            if needle in document.title.lower():
                add(document.title)
            for tech in document.technologies:
                if needle in tech.lower():
                    add(tech)
        for entry in history:
            past = entry["query"]
            if needle in past.lower() and past != query:
                add(past)
        return suggestions[:limit]

    def analytics(self, days: int = 30) -> dict:
        cutoff = utc_now() - timedelta(days=days)
        with self._lock:
            recent = [
                entry
                for entry in self.history
                if parse_timestamp(entry["timestamp"]) > cutoff
            ]
        counts = Counter(entry["query"] for entry in recent)
        daily = Counter(entry["timestamp"][:10] for entry in recent)
        return {
            "totalSearches": len(recent),
            "uniqueQueries": len(counts),
            "topQueries": [
                {"query": q, "count": c} for q, c in counts.most_common(10)
            ],
            "searchTrends": [
                {"date": date, "count": daily[date]} for date in sorted(daily)
            ],
        }

    # Index maintenance

    def add_document(self, document: SearchDocument) -> SearchDocument:
        with self._lock:
            for index, existing in enumerate(self.documents):
                if existing.id == document.id:
                    self.documents[index] = document
                    break
            else:
                self.documents.append(document)
        self._invalidate()
        self.save()
        logger.info("Indexed search document %s", document.id)
        return document

    def update_document(self, document_id: str, updates: dict) -> Optional[SearchDocument]:
        with self._lock:
            for index, existing in enumerate(self.documents):
                if existing.id == document_id:
                    merged = SearchDocument.from_dict(
                        {**existing.to_dict(), **updates, "id": document_id}
                    )
                    self.documents[index] = merged
                    break
            else:
                return None
        self._invalidate()
        self.save()
        return merged

    def remove_document(self, document_id: str) -> bool:
        with self._lock:
            before = len(self.documents)
            self.documents = [d for d in self.documents if d.id != document_id]
            removed = len(self.documents) != before
        if removed:
            self._invalidate()
            self.save()
        return removed

    def reindex(self, documents: list[SearchDocument]) -> int:
        with self._lock:
            self.documents = list(documents)
        self._invalidate()
        self.save()
        logger.info("Reindexed %d search documents", len(documents))
        return len(documents)
