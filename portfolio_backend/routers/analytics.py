"""
Visitor tracking endpoints and admin reports.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from portfolio_backend.analytics import AnalyticsService
from portfolio_backend.auth import AuthenticatedUser, require_admin
from portfolio_backend.dependencies import get_analytics_service
from portfolio_backend.schemas import PageViewRequest, TrackEventRequest

router = APIRouter(prefix="/analytics")


def request_context(request: Request) -> dict:
    return {
        "ip": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
        "referrer": request.headers.get("referer"),
    }


@router.post("/track")
def track_event(
    payload: TrackEventRequest,
    request: Request,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    if not payload.type:
        raise HTTPException(status_code=400, detail="Event type is required")
    analytics.track_event(payload.type, payload.properties, request_context(request))
    return {"success": True}


@router.post("/pageview")
def track_page_view(
    payload: PageViewRequest,
    request: Request,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    if not payload.page:
        raise HTTPException(status_code=400, detail="Page is required")
    analytics.track_page_view(payload.page, request_context(request))
    return {"success": True}


@router.post("/project/{project_id}")
def track_project_view(
    project_id: str,
    request: Request,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    analytics.track_project_view(project_id, request_context(request))
    return {"success": True}


@router.get("/summary")
def analytics_summary(
    days: int = Query(30, ge=1, le=365),
    user: AuthenticatedUser = Depends(require_admin),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return analytics.summary(days)


@router.get("/realtime")
def analytics_realtime(
    user: AuthenticatedUser = Depends(require_admin),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return analytics.realtime()


@router.get("/pages")
def analytics_pages(
    limit: int = Query(10, ge=1, le=100),
    user: AuthenticatedUser = Depends(require_admin),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return {"pages": analytics.top_pages(limit)}


@router.get("/projects")
def analytics_projects(
    limit: int = Query(10, ge=1, le=100),
    user: AuthenticatedUser = Depends(require_admin),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return {"projects": analytics.top_projects(limit)}
