"""
ReMarket - File Upload Utilities
=================================
Listing image upload, validation, and thumbnailing. Only the resulting
relative path is persisted.
"""

import logging
import os
import uuid
from typing import Optional, Tuple

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from common.exceptions import ValidationError
from config import settings

logger = logging.getLogger("remarket.upload")


def save_upload_file(
    upload_file: Optional[UploadFile],
    max_size: Tuple[int, int] = settings.DEFAULT_IMAGE_MAX_SIZE,
    subfolder: str = "",
) -> Optional[str]:
    """
    Save an uploaded image file with validation and resizing.

    Returns:
        Relative file path string, or None if no file was sent

    Raises:
        ValidationError for oversized files, disallowed extensions or
        content that isn't a readable image
    """
    if not upload_file or not upload_file.filename:
        return None

    upload_file.file.seek(0, 2)
    file_size = upload_file.file.tell()
    upload_file.file.seek(0)
    if file_size > settings.MAX_FILE_SIZE:
        raise ValidationError(f"Image too large (max {settings.MAX_FILE_SIZE // (1024 * 1024)} MB)")

    ext = os.path.splitext(upload_file.filename)[1].lower()
    if ext not in settings.ALLOWED_IMAGE_EXTENSIONS:
        allowed = ", ".join(sorted(settings.ALLOWED_IMAGE_EXTENSIONS))
        raise ValidationError(f"Unsupported image type. Allowed: {allowed}")

    target_dir = os.path.join(settings.UPLOAD_DIR, subfolder) if subfolder else settings.UPLOAD_DIR
    os.makedirs(target_dir, exist_ok=True)

    file_path = os.path.join(target_dir, f"{uuid.uuid4().hex}{ext}")

    try:
        img = Image.open(upload_file.file)
        img.thumbnail(max_size)
        if ext in (".jpg", ".jpeg"):
            img.convert("RGB").save(file_path, optimize=True, quality=80)
        else:
            img.save(file_path)
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Rejected upload {upload_file.filename!r}: {e}")
        raise ValidationError("Uploaded file is not a valid image")

    # Always use forward slashes for URLs
    return file_path.replace("\\", "/")


def delete_file(file_path: str) -> bool:
    """Safely delete a file from disk. Returns True if deleted."""
    try:
        if file_path and os.path.exists(file_path):
            os.remove(file_path)
            return True
    except OSError as e:
        logger.warning(f"Could not delete {file_path}: {e}")
    return False
