"""
Token authentication for admin routes.

Bearer tokens are checked as Firebase ID tokens first and then as JWTs signed
with the local secret. Passwords for the local fallback are bcrypt hashes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import bcrypt
import jwt
import requests
from fastapi import Depends, Header, HTTPException
from firebase_admin import auth as firebase_auth

from portfolio_backend.config import Settings, get_settings
from portfolio_backend.content import Collection

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_SIGN_IN_URL = (
    "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
)
CLOCK_REFERENCE_URL = "https://www.googleapis.com"
MAX_CLOCK_SKEW_SECONDS = 60
CLOCK_SKEW_WARNING_SECONDS = 30


class AuthError(Exception):
    """Raised when credentials or a token cannot be verified."""


class SigningKeyMissingError(AuthError):
    """Raised when a local JWT is needed but ``JWT_SECRET`` is unset."""


class DuplicateUserError(ValueError):
    pass


@dataclass
class AuthenticatedUser:
    uid: str
    email: Optional[str] = None
    admin: bool = False


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash.
        return False


def issue_token(
    *, uid: str, email: Optional[str], admin: bool, settings: Settings
) -> str:
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not set; cannot issue a local token")
        raise SigningKeyMissingError("JWT_SECRET is not configured")
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"uid": uid, "email": email, "admin": admin, "exp": expires}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@dataclass
class TokenVerifier:
    """Verifies bearer tokens against Firebase Auth and the local JWT secret."""

    settings: Settings
    firebase_app: Optional[object] = None
    clock_skew_seconds: int = 0

    def _verify_firebase(self, token: str) -> AuthenticatedUser:
        decoded = firebase_auth.verify_id_token(
            token,
            app=self.firebase_app,
            clock_skew_seconds=min(MAX_CLOCK_SKEW_SECONDS, abs(self.clock_skew_seconds)),
        )
        return AuthenticatedUser(
            uid=decoded["uid"],
            email=decoded.get("email"),
            admin=bool(decoded.get("admin", False)),
        )

    def _verify_jwt(self, token: str) -> AuthenticatedUser:
        if not self.settings.jwt_secret:
            raise SigningKeyMissingError("JWT_SECRET is not configured")
        decoded = jwt.decode(
            token, self.settings.jwt_secret, algorithms=[self.settings.jwt_algorithm]
        )
        uid = decoded.get("uid") or decoded.get("id") or decoded.get("sub")
        if not uid:
            raise AuthError("Token has no subject")
        return AuthenticatedUser(
            uid=str(uid),
            email=decoded.get("email"),
            admin=bool(decoded.get("admin", False)),
        )

    def verify(self, token: str) -> AuthenticatedUser:
        if self.firebase_app is not None:
            try:
                return self._verify_firebase(token)
            except Exception as exc:
                logger.debug("Not a valid Firebase token (%s), trying JWT", exc)
        try:
            return self._verify_jwt(token)
        except jwt.PyJWTError as exc:
            raise AuthError(str(exc)) from exc


def is_admin(user: AuthenticatedUser, admin_emails: list[str]) -> bool:
    return user.admin is True or (user.email is not None and user.email in admin_emails)


def public_user(user: dict, admin_emails: list[str]) -> dict:
    email = user.get("email")
    return {
        "id": user.get("id"),
        "email": email,
        "name": user.get("name"),
        "isAdmin": bool(user.get("isAdmin")) or email in admin_emails,
    }


def _firebase_sign_in(
    email: str, password: str, api_key: str, session=requests
) -> Optional[str]:
    try:
        response = session.post(
            IDENTITY_TOOLKIT_SIGN_IN_URL,
            params={"key": api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
            timeout=10,
        )
        response.raise_for_status()
        return response.json().get("idToken")
    except requests.RequestException as exc:
        logger.warning("Firebase sign-in failed for %s: %s", email, exc)
        return None


def login(
    email: str,
    password: str,
    *,
    users: Collection,
    settings: Settings,
    session=requests,
) -> dict:
    """
    Authenticate a known user and return ``{token, user}``.

    Firebase password sign-in is used when a web API key is configured; the
    bcrypt hash stored with the user is the fallback.
    """
    normalized = (email or "").strip().lower()
    user = users.find_by("email", normalized)
    if not user:
        raise AuthError("Invalid credentials")

    profile = public_user(user, settings.admin_emails)
    if settings.firebase_web_api_key:
        token = _firebase_sign_in(
            normalized, password, settings.firebase_web_api_key, session=session
        )
        if token:
            return {"token": token, "user": profile}

    if not check_password(password, user.get("password")):
        raise AuthError("Invalid credentials")
    token = issue_token(
        uid=user["id"], email=normalized, admin=profile["isAdmin"], settings=settings
    )
    return {"token": token, "user": profile}


def register_user(
    users: Collection,
    *,
    email: str,
    password: str,
    name: Optional[str] = None,
    admin: bool = False,
) -> dict:
    normalized = email.strip().lower()
    if users.find_by("email", normalized):
        raise DuplicateUserError(f"User {normalized} already exists")
    record = users.create(
        {
            "email": normalized,
            "name": name or normalized.split("@")[0],
            "password": hash_password(password),
            "isAdmin": admin,
        }
    )
    return {k: v for k, v in record.items() if k != "password"}


def measure_clock_skew(session=requests, url: str = CLOCK_REFERENCE_URL) -> float:
    """
    Compare the local clock with Google's ``Date`` header.

    Returns the offset in seconds (remote minus local), or 0.0 on failure.
    """
    try:
        response = session.head(url, timeout=5)
        remote = parsedate_to_datetime(response.headers["Date"])
    except (requests.RequestException, KeyError, TypeError, ValueError) as exc:
        logger.warning("Could not check clock skew: %s", exc)
        return 0.0
    skew = (remote - datetime.now(timezone.utc)).total_seconds()
    if abs(skew) > CLOCK_SKEW_WARNING_SECONDS:
        logger.warning(
            "Local clock is off by %.0f seconds; token verification may fail", skew
        )
    else:
        logger.info("Clock skew %.1f seconds", skew)
    return skew


def _token_verifier() -> TokenVerifier:
    from portfolio_backend.dependencies import get_token_verifier

    return get_token_verifier()


def get_current_user(
    authorization: Optional[str] = Header(None),
    verifier: TokenVerifier = Depends(_token_verifier),
) -> AuthenticatedUser:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized - No token provided")
    token = authorization[len("Bearer ") :].strip()
    try:
        return verifier.verify(token)
    except AuthError:
        raise HTTPException(status_code=401, detail="Unauthorized - Invalid token")


def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not is_admin(user, get_settings().admin_emails):
        raise HTTPException(status_code=403, detail="Forbidden - Admin access required")
    return user
