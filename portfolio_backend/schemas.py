"""
Pydantic request schemas for the portfolio API.

Content records (projects, skills, ...) are loosely typed and pass through
as plain dicts; only the service-style endpoints validate their bodies.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=1024)


class LoginResponse(BaseModel):
    token: str
    user: dict


class ContactFormRequest(BaseModel):
    # Required fields are checked by the inbox so the error text stays friendly.
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=10000)
    phone: Optional[str] = None
    company: Optional[str] = None


class ContactStatusRequest(BaseModel):
    status: str = Field(..., pattern="^(new|read|responded|archived)$")


class TrackEventRequest(BaseModel):
    type: Optional[str] = None
    properties: dict = Field(default_factory=dict)


class PageViewRequest(BaseModel):
    page: Optional[str] = None


class SearchDocumentPayload(BaseModel):
    id: Optional[str] = None
    type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    technologies: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    url: Optional[str] = None


class ReindexRequest(BaseModel):
    # Omitted documents mean "rebuild from the current content".
    documents: Optional[list[SearchDocumentPayload]] = None


class NotificationSendRequest(BaseModel):
    userId: str
    type: str
    title: str = ""
    message: str = ""
    templateId: Optional[str] = None
    variables: Optional[dict] = None
    channels: Optional[list[str]] = None


class BulkNotificationRequest(BaseModel):
    userIds: list[str] = Field(..., min_length=1)
    type: str
    title: str = ""
    message: str = ""
    templateId: Optional[str] = None
    variables: Optional[dict] = None
    channels: Optional[list[str]] = None


class MarkReadRequest(BaseModel):
    userId: str


class NotificationTemplateRequest(BaseModel):
    id: str
    name: str
    subject: str
    htmlContent: str
    textContent: str
    variables: list[str] = Field(default_factory=list)
