"""
Login and token inspection routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from portfolio_backend.auth import (
    AuthenticatedUser,
    AuthError,
    SigningKeyMissingError,
    get_current_user,
    is_admin,
    login,
)
from portfolio_backend.config import get_settings
from portfolio_backend.content import ContentService
from portfolio_backend.dependencies import get_content_service
from portfolio_backend.schemas import LoginRequest, LoginResponse

router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
def auth_login(
    payload: LoginRequest, content: ContentService = Depends(get_content_service)
):
    try:
        return login(
            payload.email, payload.password, users=content.users, settings=get_settings()
        )
    except SigningKeyMissingError:
        raise HTTPException(status_code=503, detail="Token signing is not configured")
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid credentials")


@router.get("/auth/verify")
def auth_verify(user: AuthenticatedUser = Depends(get_current_user)):
    return {
        "uid": user.uid,
        "email": user.email,
        "isAdmin": is_admin(user, get_settings().admin_emails),
    }
