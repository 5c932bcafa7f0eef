"""
Image hosting abstraction for Cloudinary, ImageKit, and in-memory testing.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import cloudinary
import cloudinary.api
import cloudinary.uploader
import cloudinary.utils
from imagekitio import ImageKit
from imagekitio.models.ListAndSearchFileRequestOptions import (
    ListAndSearchFileRequestOptions,
)
from imagekitio.models.UploadFileRequestOptions import UploadFileRequestOptions
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

CLOUDINARY = "cloudinary"
IMAGEKIT = "imagekit"

CLOUDINARY_IMAGE_TYPES = {
    "carousel",
    "portfolio",
    "hero",
    "case-studies",
    "caseStudies",
    "casestudy",
    "case-study",
}

ALLOWED_SIGNATURE_FOLDERS = (
    "portfolio",
    "portfolio/carousel",
    "portfolio/projects",
    "portfolio/caseStudies",
)

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "GIF", "WEBP"}
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ImageUploadError(Exception):
    """Raised when an image host rejects or cannot serve a request."""


class InvalidImageError(ValueError):
    """Raised when an uploaded file is not an acceptable image."""


def inspect_image(source: bytes, file_name: str) -> tuple[int, int, str]:
    """
    Check that ``source`` is a JPEG/PNG/GIF/WebP image under the size limit.

    Returns ``(width, height, format)``.
    """
    if len(source) > MAX_UPLOAD_BYTES:
        raise InvalidImageError("File too large (max 10MB)")
    extension = os.path.splitext(file_name or "")[1].lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise InvalidImageError("Only image files are allowed")
    try:
        with Image.open(io.BytesIO(source)) as img:
            width, height, image_format = img.width, img.height, img.format
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError("Only image files are allowed") from exc
    if image_format not in ALLOWED_IMAGE_FORMATS:
        raise InvalidImageError("Only image files are allowed")
    return width, height, image_format.lower()


@dataclass
class UploadedImage:
    url: str
    public_id: str
    service: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "url": self.url,
            "publicId": self.public_id,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "service": self.service,
        }
        if self.created_at:
            payload["createdAt"] = self.created_at
        return payload


class ImageHost(Protocol):
    """Defines the operations the API needs from an image host."""

    service: str

    def upload(
        self,
        source: bytes,
        *,
        file_name: str,
        folder: str,
        metadata: Optional[dict] = None,
        options: Optional[dict] = None,
    ) -> UploadedImage:
        ...

    def delete(self, public_id: str) -> bool:
        ...

    def list_folder(self, folder: str) -> list[UploadedImage]:
        ...

    def upload_signature(self, folder: str) -> dict:
        ...

    def ping(self) -> dict:
        ...


@dataclass
class InMemoryImageHost:
    """Test double for image hosting."""

    service: str = CLOUDINARY
    base_url: str = "https://res.cloudinary.com/demo/image/upload"
    stored: dict = field(default_factory=dict)
    deleted: list = field(default_factory=list)

    def upload(
        self,
        source: bytes,
        *,
        file_name: str,
        folder: str,
        metadata: Optional[dict] = None,
        options: Optional[dict] = None,
    ) -> UploadedImage:
        stem, ext = os.path.splitext(os.path.basename(file_name))
        public_id = f"{folder}/{stem}" if folder else stem
        image = UploadedImage(
            url=f"{self.base_url}/{public_id}{ext}",
            public_id=public_id,
            service=self.service,
            format=ext.lstrip(".") or None,
        )
        self.stored[public_id] = {
            "image": image,
            "bytes": source,
            "metadata": dict(metadata or {}),
            "options": dict(options or {}),
        }
        return image

    def delete(self, public_id: str) -> bool:
        self.deleted.append(public_id)
        return self.stored.pop(public_id, None) is not None

    def list_folder(self, folder: str) -> list[UploadedImage]:
        prefix = f"{folder}/"
        return [
            entry["image"]
            for key, entry in self.stored.items()
            if key.startswith(prefix)
        ]

    def upload_signature(self, folder: str) -> dict:
        return {
            "signature": "test-signature",
            "timestamp": int(time.time()),
            "folder": folder,
            "service": self.service,
        }

    def ping(self) -> dict:
        return {"status": "healthy", "service": self.service}


@dataclass
class CloudinaryImageHost:
    """Cloudinary client using the official SDK."""

    cloud_name: str
    api_key: str
    api_secret: str
    service: str = CLOUDINARY

    def __post_init__(self):
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=self.api_key,
            api_secret=self.api_secret,
            secure=True,
        )

    def upload(
        self,
        source: bytes,
        *,
        file_name: str,
        folder: str,
        metadata: Optional[dict] = None,
        options: Optional[dict] = None,
    ) -> UploadedImage:
        upload_options = {
            "folder": folder,
            "resource_type": "auto",
            "overwrite": True,
        }
        if metadata:
            upload_options["context"] = metadata
        upload_options.update(options or {})
        try:
            result = cloudinary.uploader.upload(io.BytesIO(source), **upload_options)
        except Exception as exc:
            logger.exception("Cloudinary upload of %s failed", file_name)
            raise ImageUploadError(str(exc)) from exc
        return UploadedImage(
            url=result["secure_url"],
            public_id=result["public_id"],
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
            service=self.service,
        )

    def delete(self, public_id: str) -> bool:
        result = cloudinary.uploader.destroy(public_id)
        return result.get("result") == "ok"

    def list_folder(self, folder: str) -> list[UploadedImage]:
        result = (
            cloudinary.Search()
            .expression(f"folder:{folder}")
            .sort_by("created_at", "desc")
            .execute()
        )
        return [
            UploadedImage(
                url=resource["secure_url"],
                public_id=resource["public_id"],
                width=resource.get("width"),
                height=resource.get("height"),
                format=resource.get("format"),
                created_at=resource.get("created_at"),
                service=self.service,
            )
            for resource in result.get("resources", [])
        ]

    def upload_signature(self, folder: str) -> dict:
        timestamp = int(time.time())
        signature = cloudinary.utils.api_sign_request(
            {"timestamp": timestamp, "folder": folder}, self.api_secret
        )
        return {
            "signature": signature,
            "timestamp": timestamp,
            "cloudName": self.cloud_name,
            "apiKey": self.api_key,
        }

    def ping(self) -> dict:
        result = cloudinary.api.ping()
        return {"status": "healthy", "service": self.service, "response": dict(result)}


@dataclass
class ImageKitImageHost:
    """ImageKit client using the official SDK."""

    public_key: str
    private_key: str
    url_endpoint: str
    service: str = IMAGEKIT

    def __post_init__(self):
        self._client = ImageKit(
            private_key=self.private_key,
            public_key=self.public_key,
            url_endpoint=self.url_endpoint,
        )

    def upload(
        self,
        source: bytes,
        *,
        file_name: str,
        folder: str,
        metadata: Optional[dict] = None,
        options: Optional[dict] = None,
    ) -> UploadedImage:
        tags = [str(value) for value in (metadata or {}).values() if value]
        request_options = UploadFileRequestOptions(folder=folder, tags=tags or None)
        try:
            result = self._client.upload_file(
                file=base64.b64encode(source).decode("ascii"),
                file_name=file_name,
                options=request_options,
            )
        except Exception as exc:
            logger.exception("ImageKit upload of %s failed", file_name)
            raise ImageUploadError(str(exc)) from exc
        return UploadedImage(
            url=result.url,
            public_id=result.file_id,
            width=result.width,
            height=result.height,
            format=os.path.splitext(file_name)[1].lstrip(".") or None,
            service=self.service,
        )

    def delete(self, public_id: str) -> bool:
        self._client.delete_file(file_id=public_id)
        return True

    def list_folder(self, folder: str) -> list[UploadedImage]:
        result = self._client.list_files(
            options=ListAndSearchFileRequestOptions(path=folder)
        )
        return [
            UploadedImage(
                url=item.url,
                public_id=item.file_id,
                width=getattr(item, "width", None),
                height=getattr(item, "height", None),
                format=getattr(item, "file_type", None),
                created_at=str(getattr(item, "created_at", "") or "") or None,
                service=self.service,
            )
            for item in result.list or []
        ]

    def upload_signature(self, folder: str) -> dict:
        token = self._client.get_authentication_parameters()
        return {
            **token,
            "urlEndpoint": self.url_endpoint,
            "publicKey": self.public_key,
        }

    def ping(self) -> dict:
        return {
            "status": "configured",
            "service": self.service,
            "urlEndpoint": self.url_endpoint,
        }


def service_for_image_type(image_type: str) -> str:
    return CLOUDINARY if image_type in CLOUDINARY_IMAGE_TYPES else IMAGEKIT


def safe_signature_folder(folder: Optional[str]) -> str:
    return folder if folder in ALLOWED_SIGNATURE_FOLDERS else "portfolio"


def resized_image_url(
    url: str,
    width: Optional[int],
    height: Optional[int],
    *,
    crop: Optional[str] = None,
    quality: Optional[str] = None,
    format: Optional[str] = None,
) -> str:
    """Build a transformed delivery URL for Cloudinary or ImageKit images."""
    if not url:
        return url
    if "cloudinary" in url:
        parts = url.split("/upload/")
        if len(parts) != 2:
            return url
        transformations = f"c_{crop or 'fill'},w_{width},h_{height}"
        if quality:
            transformations += f",q_{quality}"
        if format:
            transformations += f",f_{format}"
        return f"{parts[0]}/upload/{transformations}/{parts[1]}"
    if "imagekit" in url:
        params = []
        if width:
            params.append(f"w-{width}")
        if height:
            params.append(f"h-{height}")
        if crop:
            params.append(f"c-{crop}")
        if quality:
            params.append(f"q-{quality}")
        if format:
            params.append(f"f-{format}")
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}tr={','.join(params)}"
    return url


class ImageService:
    """Routes image operations to the host that owns each image type."""

    def __init__(self, hosts: dict[str, ImageHost]):
        self.hosts = hosts

    def host(self, service: str) -> ImageHost:
        host = self.hosts.get(service)
        if host is None:
            raise ImageUploadError(f"Image service '{service}' is not configured")
        return host

    def upload(
        self,
        source: bytes,
        *,
        file_name: str,
        image_type: str = "project",
        folder: Optional[str] = None,
        metadata: Optional[dict] = None,
        force_service: Optional[str] = None,
        options: Optional[dict] = None,
    ) -> UploadedImage:
        """
        Validate and upload an image. Raises InvalidImageError for files that
        are not images and ImageUploadError when the host fails.
        """
        width, height, image_format = inspect_image(source, file_name)
        service = force_service or service_for_image_type(image_type)
        target_folder = folder or f"portfolio/{image_type}"
        logger.info("Uploading %s to %s (%s)", file_name, service, target_folder)
        uploaded = self.host(service).upload(
            source,
            file_name=file_name,
            folder=target_folder,
            metadata=metadata,
            options=options,
        )
        # Hosts that do not report dimensions get the ones read locally.
        uploaded.width = uploaded.width or width
        uploaded.height = uploaded.height or height
        uploaded.format = uploaded.format or image_format
        return uploaded

    def delete(self, public_id: str, service: str = CLOUDINARY) -> bool:
        return self.host(service).delete(public_id)

    def list_folder(self, folder: str, service: str = CLOUDINARY) -> list[UploadedImage]:
        return self.host(service).list_folder(folder)

    def upload_signature(self, folder: Optional[str], service: str = CLOUDINARY) -> dict:
        return self.host(service).upload_signature(safe_signature_folder(folder))

    def status(self) -> dict:
        report = {}
        for name, host in self.hosts.items():
            try:
                report[name] = host.ping()
            except Exception as exc:
                logger.warning("Image host %s ping failed: %s", name, exc)
                report[name] = {"status": "unhealthy", "error": str(exc)}
        return report
