"""
S3 storage service for profile photos.

Handles:
- Decoding ``data:image/<type>;base64,...`` uploads
- Uploading photos under a per-user unique key
- Deleting photos that live under the public photo URL

Works with any S3-compatible storage (AWS, R2, MinIO).
"""

import base64
import binascii
import logging
import re
import time
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import AuthError, ValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class PhotoUploadError(AuthError):
    status_code = 500
    error = "upload_failed"


@dataclass(frozen=True)
class ImageData:
    """Decoded image from a data URI."""

    subtype: str
    content: bytes

    @property
    def content_type(self) -> str:
        return f"image/{self.subtype}"


def is_data_uri(value: str) -> bool:
    return value.startswith("data:image/")


def is_absolute_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def parse_image_data_uri(value: str) -> ImageData | None:
    """
    Decode a base64 image data URI.

    Returns:
        ImageData, or None if the value is not a base64 image data URI

    Raises:
        ValidationError: If the base64 payload cannot be decoded
    """
    match = DATA_URI_PATTERN.match(value)
    if match is None:
        return None
    subtype, payload = match.groups()
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid profile photo data") from e
    return ImageData(subtype=subtype.lower(), content=content)


class ProfilePhotoStorage:
    """Service for profile photos in S3-compatible storage."""

    def __init__(self, settings: Settings | None = None, clock: Callable[[], float] = time.time):
        """
        Initialize photo storage.

        Args:
            settings: Application settings with S3 configuration.
                     Uses get_settings() if not provided.
            clock: Epoch seconds source used to make keys unique
        """
        self.settings = settings or get_settings()
        self._clock = clock

    @asynccontextmanager
    async def get_client(self) -> "AsyncGenerator[Any, None]":
        """
        Get S3 client context manager.

        Yields:
            Async S3 client from aiobotocore

        Raises:
            PhotoUploadError: If S3 storage is not configured
        """
        if not self.settings.s3_configured:
            raise PhotoUploadError(
                "Photo storage not configured. "
                "Set CLUBAUTH_S3_ACCESS_KEY and CLUBAUTH_S3_SECRET_KEY environment variables."
            )

        from aiobotocore.session import get_session

        session = get_session()
        async with session.create_client(
            "s3",
            endpoint_url=self.settings.s3_endpoint,
            aws_access_key_id=self.settings.s3_access_key,
            aws_secret_access_key=self.settings.s3_secret_key,
            region_name=self.settings.s3_region,
        ) as client:
            yield client

    @property
    def public_base_url(self) -> str:
        return self.settings.photo_public_base_url.rstrip("/")

    def build_key(self, user_id: str, image: ImageData, filename: str | None = None) -> str:
        """
        Object key for a new photo: ``<prefix><user_id>-<millis>.<ext>``.

        A client supplied filename replaces the extension suffix.
        """
        stamp = int(self._clock() * 1000)
        if filename:
            safe = UNSAFE_FILENAME_CHARS.sub("_", filename.rsplit("/", 1)[-1])
            name = f"{user_id}-{stamp}-{safe}"
        else:
            name = f"{user_id}-{stamp}.{image.subtype}"
        return f"{self.settings.photo_key_prefix}{name}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Object key for a URL we serve, or None for foreign URLs."""
        prefix = f"{self.public_base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix) :] or None

    async def upload(self, user_id: str, image: ImageData, filename: str | None = None) -> str:
        """
        Upload a profile photo.

        Args:
            user_id: Owner of the photo
            image: Decoded image
            filename: Optional client filename

        Returns:
            Public URL of the stored photo

        Raises:
            PhotoUploadError: If storage is unavailable or rejects the upload
        """
        key = self.build_key(user_id, image, filename)
        try:
            async with self.get_client() as s3:
                await s3.put_object(
                    Bucket=self.settings.s3_bucket,
                    Key=key,
                    Body=image.content,
                    ContentType=image.content_type,
                )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload profile photo: {key}, error: {e}")
            raise PhotoUploadError("Failed to upload profile photo") from e

        logger.info(f"Uploaded profile photo: {key} ({len(image.content)} bytes)")
        return self.public_url(key)

    async def delete_by_url(self, url: str) -> bool:
        """
        Delete a stored photo by its public URL.

        URLs outside our photo domain are left alone.

        Returns:
            True if an object was deleted
        """
        key = self.key_from_url(url)
        if key is None:
            return False
        try:
            async with self.get_client() as s3:
                await s3.delete_object(Bucket=self.settings.s3_bucket, Key=key)
        except (BotoCoreError, ClientError, PhotoUploadError) as e:
            logger.warning(f"Failed to delete old profile photo: {key}, error: {e}")
            return False

        logger.info(f"Deleted profile photo: {key}")
        return True
