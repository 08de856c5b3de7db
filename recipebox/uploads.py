# uploads.py
# Validation and storage of recipe images sent as multipart uploads.

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import File, HTTPException, UploadFile

from recipebox.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"jpeg", "jpg", "png", "gif", "webp"}
UPLOAD_URL_PREFIX = "/uploads"
CHUNK_SIZE = 1024 * 1024


@dataclass
class PendingImage:
    """
    An accepted upload held in memory until the recipe payload validates,
    so a rejected request never leaves a file behind.
    """
    filename: str
    content: bytes

    @property
    def url(self) -> str:
        return f"{UPLOAD_URL_PREFIX}/{self.filename}"

    def save(self, upload_dir: Optional[str] = None) -> Path:
        target_dir = Path(upload_dir or settings.UPLOAD_DIR)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.filename
        path.write_bytes(self.content)
        logger.debug(f"Stored uploaded image at {path}")
        return path


def is_allowed_image(filename: str, content_type: Optional[str]) -> bool:
    """Both the file extension and the MIME subtype must name an image type we accept."""
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if extension not in ALLOWED_IMAGE_TYPES:
        return False
    if not content_type or not content_type.lower().startswith("image/"):
        return False
    subtype = content_type.lower().split("/", 1)[1].split(";", 1)[0].strip()
    return subtype in ALLOWED_IMAGE_TYPES


async def validated_image(image: Optional[UploadFile] = File(None)) -> Optional[PendingImage]:
    """
    Dependency for the optional `image` form field.
    Rejects non-images (400) and files over MAX_UPLOAD_BYTES (413) before the
    route handler runs.
    """
    if image is None or not image.filename:
        return None

    if not is_allowed_image(image.filename, image.content_type):
        logger.warning(f"Rejected upload {image.filename!r} with type {image.content_type!r}")
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    max_bytes = settings.MAX_UPLOAD_BYTES
    chunks = []
    size = 0
    while True:
        chunk = await image.read(CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            logger.warning(f"Rejected upload {image.filename!r}: larger than {max_bytes} bytes")
            raise HTTPException(
                status_code=413,
                detail=f"Image exceeds the {max_bytes // (1024 * 1024)} MiB upload limit",
            )
        chunks.append(chunk)

    extension = os.path.splitext(image.filename)[1].lower()
    return PendingImage(filename=f"{uuid.uuid4().hex}{extension}", content=b"".join(chunks))
