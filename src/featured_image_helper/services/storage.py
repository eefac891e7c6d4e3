"""MinIO/S3 object storage for generated images."""

import asyncio
import io
import re
from datetime import UTC, datetime

import structlog
from minio import Minio
from minio.error import S3Error

from featured_image_helper.core.config import settings
from featured_image_helper.services.exceptions import StorageError
from featured_image_helper.services.interfaces import StoredObject

logger = structlog.get_logger()

_VALID_NAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")


def _validate_filename(filename: str) -> None:
    """Validate that a filename does not contain path traversal characters."""
    if not filename or not _VALID_NAME_RE.match(filename) or filename.startswith("."):
        raise StorageError(
            f"Invalid filename {filename!r}: must contain only alphanumeric characters, "
            f"hyphens, underscores, and dots"
        )


class StorageService:
    """Stores raw image bytes in a MinIO/S3 bucket."""

    def __init__(
        self,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        bucket: str | None = None,
        secure: bool | None = None,
    ) -> None:
        """Initialize MinIO client with configuration."""
        self.endpoint = endpoint or settings.minio_endpoint
        self.access_key = access_key or settings.minio_access_key
        self.secret_key = secret_key or settings.minio_secret_key
        self.bucket = bucket or settings.minio_bucket
        self.secure = secure if secure is not None else settings.minio_secure

        self._client: Minio | None = None

    @property
    def client(self) -> Minio:
        """Get or create MinIO client."""
        if self._client is None:
            if not self.endpoint or not self.access_key or not self.secret_key:
                raise StorageError("MinIO configuration incomplete")
            self._client = Minio(
                self.endpoint,
                access_key=self.access_key,
                secret_key=self.secret_key,
                secure=self.secure,
            )
        return self._client

    def _get_object_path(self, filename: str, now: datetime | None = None) -> str:
        """Date-partitioned object path, e.g. images/2026/10/slug-123.png."""
        _validate_filename(filename)
        now = now or datetime.now(UTC)
        return f"images/{now:%Y}/{now:%m}/{filename}"

    def get_public_url(self, object_path: str) -> str:
        """Public URL for an object.

        Assumes the bucket allows public reads.
        """
        protocol = "https" if self.secure else "http"
        return f"{protocol}://{self.endpoint}/{self.bucket}/{object_path}"

    async def ensure_bucket_exists(self) -> None:
        """Ensure the bucket exists, creating it if necessary."""
        exists = await asyncio.to_thread(self.client.bucket_exists, self.bucket)
        if not exists:
            await asyncio.to_thread(self.client.make_bucket, self.bucket)
            logger.info("Created bucket", bucket=self.bucket)

    async def store_bytes(self, filename: str, data: bytes, mime_type: str) -> StoredObject:
        """Upload image bytes.

        Raises:
            StorageError: Invalid filename, missing configuration or S3 failure
        """
        object_path = self._get_object_path(filename)

        try:
            await self.ensure_bucket_exists()
            await asyncio.to_thread(
                self.client.put_object,
                self.bucket,
                object_path,
                io.BytesIO(data),
                len(data),
                mime_type,
            )
        except StorageError:
            raise
        except Exception as e:
            # S3Error or a urllib3 connection failure from the minio client
            logger.error("Failed to upload image", error=str(e), path=object_path)
            raise StorageError(f"Failed to upload image: {e}") from e

        logger.info("Uploaded image", path=object_path, size=len(data), mime_type=mime_type)
        return StoredObject(path=object_path, url=self.get_public_url(object_path))

    async def delete_object(self, object_path: str) -> None:
        """Remove an object, ignoring ones that are already gone."""
        try:
            await asyncio.to_thread(self.client.remove_object, self.bucket, object_path)
            logger.debug("Deleted object", path=object_path)
        except S3Error as e:
            if e.code != "NoSuchKey":
                logger.warning("Failed to delete object", error=str(e), path=object_path)
