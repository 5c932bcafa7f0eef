"""
Carousel image and carousel settings routes.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.datastructures import UploadFile

from portfolio_backend.auth import AuthenticatedUser, require_admin
from portfolio_backend.content import (
    DEFAULT_CAROUSEL_ORDER,
    DEFAULT_CAROUSEL_TITLE,
    ContentService,
)
from portfolio_backend.dependencies import get_content_service, get_image_service
from portfolio_backend.images import (
    CLOUDINARY,
    ImageService,
    ImageUploadError,
    InvalidImageError,
    resized_image_url,
)
from portfolio_backend.timeutils import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()

CAROUSEL_FOLDER = "portfolio/carousel"
CAROUSEL_UPLOAD_OPTIONS = {
    "transformation": [
        {"width": 1920, "crop": "limit"},
        {"quality": "auto:best"},
    ]
}


def _int_or(value, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


async def _read_body(request: Request) -> dict:
    """Accept multipart/urlencoded forms as well as JSON bodies."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        return {key: form.get(key) for key in form.keys()}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _parse_metadata(value) -> dict:
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid metadata")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="Invalid metadata")
    return parsed


@router.get("/carousel-images")
def list_carousel_images(content: ContentService = Depends(get_content_service)):
    return content.carousel.list()


@router.get("/carousel-images/{image_id}")
def get_carousel_image(image_id: str, content: ContentService = Depends(get_content_service)):
    image = content.carousel.get(image_id)
    if not image:
        raise HTTPException(status_code=404, detail="Carousel image not found")
    return image


@router.post("/carousel-images", status_code=201)
async def create_carousel_image(
    request: Request,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
    images: ImageService = Depends(get_image_service),
):
    body = await _read_body(request)
    upload = body.get("image")

    if body.get("url") and body.get("publicId"):
        # Uploaded directly from the browser widget.
        info = {
            "url": body["url"],
            "publicId": body["publicId"],
            "width": _int_or(body.get("width"), 800),
            "height": _int_or(body.get("height"), 400),
            "service": CLOUDINARY,
        }
    elif isinstance(upload, UploadFile):
        data = await upload.read()
        try:
            uploaded = images.upload(
                data,
                file_name=upload.filename or "carousel-image",
                image_type="carousel",
                folder=body.get("folder") or CAROUSEL_FOLDER,
                metadata=_parse_metadata(body.get("metadata")),
                options=CAROUSEL_UPLOAD_OPTIONS,
            )
        except InvalidImageError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except ImageUploadError as exc:
            raise HTTPException(status_code=502, detail=f"Failed to upload image: {exc}")
        info = uploaded.to_dict()
    else:
        raise HTTPException(status_code=400, detail="No image provided")

    caption = body.get("caption") or ""
    now = utc_now_iso()
    record = {
        "url": info["url"],
        "publicId": info["publicId"],
        "service": info.get("service") or CLOUDINARY,
        "caption": caption,
        "title": caption or DEFAULT_CAROUSEL_TITLE,
        "description": body.get("description") or "",
        "altText": body.get("altText") or caption or "Carousel image",
        "order": _int_or(body.get("order"), DEFAULT_CAROUSEL_ORDER),
        "width": info.get("width"),
        "height": info.get("height"),
        "thumbnail": resized_image_url(info["url"], 300, 200, crop="fill"),
        "createdAt": now,
        "updatedAt": now,
    }
    saved = content.carousel.create(record, user.uid)
    logger.info("Added carousel image %s", saved["id"])
    return saved


@router.put("/carousel-images/{image_id}")
def update_carousel_image(
    image_id: str,
    payload: dict,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    image = content.carousel.update(image_id, payload, user.uid)
    if not image:
        raise HTTPException(status_code=404, detail="Carousel image not found")
    return image


@router.delete("/carousel-images/{image_id}")
def delete_carousel_image(
    image_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    removed = content.carousel.delete(image_id)
    if removed is None:
        raise HTTPException(status_code=404, detail="Carousel image not found")
    return {"message": "Carousel image deleted successfully"}


@router.get("/carousel-settings")
def get_carousel_settings(content: ContentService = Depends(get_content_service)):
    return content.carousel_settings.get()


@router.put("/carousel-settings")
def update_carousel_settings(
    payload: dict,
    user: AuthenticatedUser = Depends(require_admin),
    content: ContentService = Depends(get_content_service),
):
    return content.carousel_settings.update(payload, user.uid)
