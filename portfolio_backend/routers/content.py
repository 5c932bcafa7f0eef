"""
Portfolio content routes: projects, case studies, sections, and the small
collections and documents edited from the admin panel.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from portfolio_backend.auth import AuthenticatedUser, get_current_user, require_admin
from portfolio_backend.content import ContentService, filter_projects, standardize_case_study
from portfolio_backend.dependencies import get_content_service

logger = logging.getLogger(__name__)

router = APIRouter()


# Projects


@router.get("/projects")
def list_projects(
    featured: Optional[bool] = Query(None),
    category: Optional[str] = Query(None),
    technology: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    content: ContentService = Depends(get_content_service),
):
    return filter_projects(
        content.projects.list(),
        featured=featured,
        category=category,
        technology=technology,
        status=status,
    )


@router.get("/projects/meta/categories")
def project_categories(content: ContentService = Depends(get_content_service)):
    return content.project_categories()


@router.get("/projects/meta/technologies")
def project_technologies(content: ContentService = Depends(get_content_service)):
    return content.project_technologies()


@router.get("/projects/{project_id}")
def get_project(project_id: str, content: ContentService = Depends(get_content_service)):
    project = content.projects.get(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("/projects", status_code=201)
def create_project(
    payload: dict,
    user: AuthenticatedUser = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    return content.projects.create(payload, user.uid)


@router.put("/projects/{project_id}")
def update_project(
    project_id: str,
    payload: dict,
    user: AuthenticatedUser = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    project = content.projects.update(project_id, payload, user.uid)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    if not content.projects.delete(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"message": "Project deleted successfully"}


# Case studies


@router.get("/case-studies")
def list_case_studies(content: ContentService = Depends(get_content_service)):
    return [standardize_case_study(cs) for cs in content.case_studies.list()]


@router.get("/case-studies/{case_study_id}")
def get_case_study(
    case_study_id: str, content: ContentService = Depends(get_content_service)
):
    record = content.case_studies.get(case_study_id)
    if not record:
        raise HTTPException(status_code=404, detail="Case study not found")
    return standardize_case_study(record)


@router.post("/case-studies", status_code=201)
def create_case_study(
    payload: dict,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    return content.case_studies.create(payload, user.uid)


@router.put("/case-studies/{case_study_id}")
def update_case_study(
    case_study_id: str,
    payload: dict,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    record = content.case_studies.update(case_study_id, payload, user.uid)
    if not record:
        raise HTTPException(status_code=404, detail="Case study not found")
    return record


@router.delete("/case-studies/{case_study_id}")
def delete_case_study(
    case_study_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    if not content.case_studies.delete(case_study_id, user.uid):
        raise HTTPException(status_code=404, detail="Case study not found")
    return {"message": "Case study deleted successfully"}


# Homepage sections


@router.get("/sections")
def get_sections(content: ContentService = Depends(get_content_service)):
    return content.sections.get()


@router.put("/sections")
def update_sections(
    payload: dict,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    return content.sections.update(payload, user.uid)


# Skills, testimonials, timeline


def _add_collection_routes(path: str, attribute: str, thing: str) -> None:
    """Register list/get/create/update/delete routes for a simple collection."""
    not_found = f"{thing} not found"

    def list_records(content: ContentService = Depends(get_content_service)):
        return getattr(content, attribute).list()

    def get_record(record_id: str, content: ContentService = Depends(get_content_service)):
        record = getattr(content, attribute).get(record_id)
        if not record:
            raise HTTPException(status_code=404, detail=not_found)
        return record

    def create_record(
        payload: dict,
        user: AuthenticatedUser = Depends(require_admin),
        content: ContentService = Depends(get_content_service),
    ):
        return getattr(content, attribute).create(payload, user.uid)

    def update_record(
        record_id: str,
        payload: dict,
        user: AuthenticatedUser = Depends(require_admin),
        content: ContentService = Depends(get_content_service),
    ):
        record = getattr(content, attribute).update(record_id, payload, user.uid)
        if not record:
            raise HTTPException(status_code=404, detail=not_found)
        return record

    def delete_record(
        record_id: str,
        user: AuthenticatedUser = Depends(require_admin),
        content: ContentService = Depends(get_content_service),
    ):
        if not getattr(content, attribute).delete(record_id):
            raise HTTPException(status_code=404, detail=not_found)
        return {"message": f"{thing} deleted successfully"}

    router.add_api_route(path, list_records, methods=["GET"], name=f"list_{attribute}")
    router.add_api_route(
        f"{path}/{{record_id}}", get_record, methods=["GET"], name=f"get_{attribute}"
    )
    router.add_api_route(
        path, create_record, methods=["POST"], status_code=201, name=f"create_{attribute}"
    )
    router.add_api_route(
        f"{path}/{{record_id}}", update_record, methods=["PUT"], name=f"update_{attribute}"
    )
    router.add_api_route(
        f"{path}/{{record_id}}", delete_record, methods=["DELETE"], name=f"delete_{attribute}"
    )


_add_collection_routes("/skills", "skills", "Skill")
_add_collection_routes("/testimonials", "testimonials", "Testimonial")
_add_collection_routes("/timeline", "timeline", "Timeline entry")


# Contact info, about page, site settings


def _add_document_routes(path: str, attribute: str) -> None:
    def get_document(content: ContentService = Depends(get_content_service)):
        return getattr(content, attribute).get()

    def update_document(
        payload: dict,
        user: AuthenticatedUser = Depends(require_admin),
        content: ContentService = Depends(get_content_service),
    ):
        return getattr(content, attribute).update(payload, user.uid)

    router.add_api_route(path, get_document, methods=["GET"], name=f"get_{attribute}")
    router.add_api_route(path, update_document, methods=["PUT"], name=f"update_{attribute}")


_add_document_routes("/contact", "contact")
_add_document_routes("/about", "about")
_add_document_routes("/settings", "settings")
