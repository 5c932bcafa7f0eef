"""
Public contact form submission and the admin inbox.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from portfolio_backend.auth import AuthenticatedUser, require_admin
from portfolio_backend.contact import ContactInbox, ContactValidationError, RateLimitedError
from portfolio_backend.dependencies import get_contact_inbox
from portfolio_backend.schemas import ContactFormRequest, ContactStatusRequest

router = APIRouter(prefix="/contact-form")


@router.post("/submit", status_code=201)
def submit_contact_form(
    payload: ContactFormRequest,
    request: Request,
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    form = payload.model_dump()
    form["ip"] = request.client.host if request.client else None
    form["userAgent"] = request.headers.get("user-agent")
    try:
        return inbox.submit(form)
    except ContactValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RateLimitedError as exc:
        raise HTTPException(status_code=429, detail=str(exc))


@router.get("/messages")
def list_contact_messages(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_admin),
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    return inbox.list(status=status, limit=limit, offset=offset)


@router.get("/messages/{contact_id}")
def get_contact_message(
    contact_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    record = inbox.get(contact_id)
    if not record:
        raise HTTPException(status_code=404, detail="Contact message not found")
    return record


@router.put("/messages/{contact_id}/status")
def update_contact_status(
    contact_id: str,
    payload: ContactStatusRequest,
    user: AuthenticatedUser = Depends(require_admin),
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    record = inbox.update_status(contact_id, payload.status)
    if not record:
        raise HTTPException(status_code=404, detail="Contact message not found")
    return record


@router.get("/stats")
def contact_stats(
    days: int = Query(30, ge=1, le=365),
    user: AuthenticatedUser = Depends(require_admin),
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    return inbox.stats(days)
