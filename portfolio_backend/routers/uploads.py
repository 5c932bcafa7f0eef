"""
Image upload proxying, browser upload signatures, and hosted image listing.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from portfolio_backend.auth import AuthenticatedUser, require_admin
from portfolio_backend.dependencies import get_image_service
from portfolio_backend.images import (
    CLOUDINARY,
    ImageService,
    ImageUploadError,
    InvalidImageError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/upload-signature")
def upload_signature(
    folder: str = Query("portfolio"),
    service: str = Query(CLOUDINARY, pattern="^(cloudinary|imagekit)$"),
    images: ImageService = Depends(get_image_service),
):
    try:
        return images.upload_signature(folder, service)
    except ImageUploadError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.post("/upload")
async def upload_image(
    image: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    imageType: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    user: AuthenticatedUser = Depends(require_admin),
    images: ImageService = Depends(get_image_service),
):
    if image is None:
        raise HTTPException(status_code=400, detail="No image provided")
    try:
        parsed_metadata = json.loads(metadata) if metadata else {}
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid metadata")

    image_type = imageType or "project"
    # Case study images always live on Cloudinary.
    force_service = CLOUDINARY if "case" in image_type else None
    data = await image.read()
    try:
        uploaded = images.upload(
            data,
            file_name=image.filename or "upload",
            image_type=image_type,
            folder=folder,
            metadata=parsed_metadata,
            force_service=force_service,
        )
    except InvalidImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ImageUploadError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to upload image: {exc}")
    return uploaded.to_dict()


@router.get("/images")
def list_images(
    folder: str = Query("portfolio"),
    service: str = Query(CLOUDINARY, pattern="^(cloudinary|imagekit)$"),
    user: AuthenticatedUser = Depends(require_admin),
    images: ImageService = Depends(get_image_service),
):
    try:
        hosted = images.list_folder(folder, service)
    except ImageUploadError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"images": [image.to_dict() for image in hosted], "folder": folder}
