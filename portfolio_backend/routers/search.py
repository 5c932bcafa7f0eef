"""
Site search and search index administration.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from portfolio_backend.auth import AuthenticatedUser, require_admin
from portfolio_backend.content import ContentService
from portfolio_backend.dependencies import get_content_service, get_search_service
from portfolio_backend.schemas import ReindexRequest, SearchDocumentPayload
from portfolio_backend.search import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SearchDocument,
    SearchService,
    documents_from_content,
)

router = APIRouter(prefix="/search")


@router.get("")
def search(
    q: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    technologies: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    service: SearchService = Depends(get_search_service),
):
    if not q:
        raise HTTPException(status_code=400, detail="Query parameter is required")
    tech_list = (
        [t.strip() for t in technologies.split(",") if t.strip()] if technologies else None
    )
    return service.search(
        q,
        type=type,
        category=category,
        technologies=tech_list,
        limit=min(limit, MAX_PAGE_SIZE),
        offset=offset,
    )


@router.get("/suggestions")
def search_suggestions(
    q: str = Query(""),
    limit: int = Query(5, ge=1, le=20),
    service: SearchService = Depends(get_search_service),
):
    return {"suggestions": service.suggestions(q, limit)}


@router.get("/analytics")
def search_analytics(
    days: int = Query(30, ge=1, le=365),
    user: AuthenticatedUser = Depends(require_admin),
    service: SearchService = Depends(get_search_service),
):
    return service.analytics(days)


@router.post("/index", status_code=201)
def add_search_document(
    payload: SearchDocumentPayload,
    user: AuthenticatedUser = Depends(require_admin),
    service: SearchService = Depends(get_search_service),
):
    if not (payload.id and payload.type and payload.title and payload.description):
        raise HTTPException(
            status_code=400, detail="ID, type, title, and description are required"
        )
    document = SearchDocument(
        id=payload.id,
        type=payload.type,
        title=payload.title,
        description=payload.description,
        technologies=payload.technologies,
        category=payload.category or "General",
        url=payload.url or f"/{payload.type}s/{payload.id}",
    )
    service.add_document(document)
    return {"message": "Document indexed successfully", "document": document.to_dict()}


@router.put("/index/{document_id}")
def update_search_document(
    document_id: str,
    payload: SearchDocumentPayload,
    user: AuthenticatedUser = Depends(require_admin),
    service: SearchService = Depends(get_search_service),
):
    updates = payload.model_dump(exclude_unset=True, exclude={"id"})
    document = service.update_document(document_id, updates)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"message": "Document updated successfully", "document": document.to_dict()}


@router.delete("/index/{document_id}")
def remove_search_document(
    document_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    service: SearchService = Depends(get_search_service),
):
    if not service.remove_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"message": "Document removed from index"}


@router.post("/reindex")
def reindex(
    payload: Optional[ReindexRequest] = None,
    user: AuthenticatedUser = Depends(require_admin),
    service: SearchService = Depends(get_search_service),
    content: ContentService = Depends(get_content_service),
):
    if payload is not None and payload.documents is not None:
        documents = [
            SearchDocument.from_dict(d.model_dump()) for d in payload.documents if d.id
        ]
    else:
        documents = documents_from_content(content.snapshot())
    count = service.reindex(documents)
    return {"message": "Search index rebuilt successfully", "count": count}
