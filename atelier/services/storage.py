"""
File storage for receipts, order attachments and quotation reference images.
Uses Cloudflare R2 when configured, the local upload directory otherwise.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config

from ..config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_URL,
    R2_SECRET_ACCESS_KEY,
    UPLOAD_DIR,
)
from ..shared.errors import ValidationError

logger = logging.getLogger(__name__)

# Allowed image types for uploads
ALLOWED_IMAGE_TYPES = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
    "image/heic",
    "image/heif",
]

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


def r2_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def validate_image(filename: Optional[str], content_type: Optional[str], size: int):
    if content_type and content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"Invalid file type '{content_type}'. Only images are allowed.")
    if filename and any(char in filename for char in ("..", "/", "\\")):
        raise ValidationError("Invalid filename")
    if size == 0:
        raise ValidationError("Uploaded file is empty")
    if size > MAX_FILE_SIZE:
        raise ValidationError(
            f"File size exceeds 10MB limit. Your file is {size / (1024 * 1024):.2f}MB."
        )


def store_file(
    contents: bytes, folder: str, filename: Optional[str] = None, content_type: Optional[str] = None
) -> str:
    """Store an uploaded file and return the URL (or local path) it can be read back from"""
    validate_image(filename, content_type, len(contents))

    ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "png"
    key = f"{folder}/{uuid.uuid4()}.{ext}"

    if r2_configured():
        try:
            r2 = get_r2_client()
            r2.put_object(
                Bucket=R2_BUCKET_NAME,
                Key=key,
                Body=contents,
                ContentType=content_type or "application/octet-stream",
            )
            logger.info(f"Uploaded {key} to R2 ({len(contents)} bytes)")
        except Exception as e:
            logger.error(f"Failed to upload {key} to R2: {e}")
            raise

        if R2_PUBLIC_URL:
            return f"{R2_PUBLIC_URL.rstrip('/')}/{key}"
        return key

    path = Path(UPLOAD_DIR) / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(contents)
    logger.info(f"Stored {key} locally at {path}")
    return str(path)
