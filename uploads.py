"""
Cloudinary image uploads for the catalogue.
"""

import os
import base64
import logging
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from errors import ImageUploadError, PayloadTooLargeError

logger = logging.getLogger(__name__)

cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True,
)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))


def read_upload(fileobj, limit: Optional[int] = None) -> bytes:
    """Read an uploaded file, refusing anything over ``limit`` bytes."""
    limit = MAX_UPLOAD_BYTES if limit is None else limit
    content = fileobj.read(limit + 1)
    if len(content) > limit:
        raise PayloadTooLargeError(f"Uploaded file exceeds {limit} bytes")
    return content


def to_data_uri(content: bytes, content_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def image_upload_util(file: str) -> dict:
    """Upload a file (path, URL or data URI) and return Cloudinary's result."""
    try:
        result = cloudinary.uploader.upload(file, resource_type="auto")
    except CloudinaryError as e:
        logger.error("Cloudinary upload failed: %s", e)
        raise ImageUploadError(str(e) or ImageUploadError.message) from e
    logger.info("Uploaded image %s", result.get("public_id"))
    return result
