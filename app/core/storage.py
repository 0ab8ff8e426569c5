from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from app.core.config import get_settings
from app.models.enums import ImageKind
from app.services import exceptions

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
}


def media_dir(kind: ImageKind) -> Path:
    path = get_settings().media_root_path / kind.value
    path.mkdir(parents=True, exist_ok=True)
    return path


def image_path(kind: ImageKind, file_name: str) -> Path:
    safe_name = Path(file_name).name
    return media_dir(kind) / safe_name


def image_url(kind: ImageKind, file_name: str) -> str:
    settings = get_settings()
    return f"{settings.API_V1_PREFIX}/files/{kind.value}/{file_name}"


def extract_image_name(kind: ImageKind, url: str | None) -> str | None:
    if not url:
        return None
    marker = f"/files/{kind.value}/"
    if marker in url:
        return url.split(marker, 1)[1]
    return None


def validate_image(file_name: str | None, content_type: str | None, contents: bytes) -> str:
    """Check an uploaded image and return its normalized extension."""

    if not file_name:
        raise exceptions.ValidationError("Missing filename")
    ext = Path(file_name).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise exceptions.ValidationError(
            "Unsupported file type. Allowed: " + ", ".join(sorted(ALLOWED_EXTENSIONS))
        )
    if not content_type or content_type.lower() not in ALLOWED_CONTENT_TYPES:
        raise exceptions.ValidationError(
            "Unsupported content type. Allowed: " + ", ".join(sorted(ALLOWED_CONTENT_TYPES))
        )
    if not contents:
        raise exceptions.ValidationError("Empty file")
    max_size_mb = get_settings().MAX_UPLOAD_SIZE_MB
    if len(contents) > max_size_mb * 1024 * 1024:
        raise exceptions.ValidationError(f"File exceeds maximum size of {max_size_mb} MB")
    return ext


def save_image(kind: ImageKind, *, file_name: str | None, content_type: str | None, contents: bytes) -> str:
    """Validate and store an image, returning the URL it is served from."""

    ext = validate_image(file_name, content_type, contents)
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    stored_name = f"{uuid4().hex[:8]}_{timestamp}{ext}"
    destination = media_dir(kind) / stored_name
    with destination.open("wb") as buffer:
        buffer.write(contents)
    logger.info("Stored %s image %s (%s bytes)", kind.name.lower(), stored_name, len(contents))
    return image_url(kind, stored_name)


def delete_image(kind: ImageKind, url: str | None) -> bool:
    name = extract_image_name(kind, url)
    if not name:
        return False
    path = image_path(kind, name)
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError:
        logger.warning("Could not delete image file %s", path, exc_info=True)
        return False
    return True
