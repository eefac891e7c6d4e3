"""Tests for MinIO/S3 storage service."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error

from featured_image_helper.services.exceptions import StorageError
from featured_image_helper.services.storage import StorageService


def make_s3_error(code: str) -> S3Error:
    return S3Error(
        code=code,
        message="error",
        resource="test",
        request_id="123",
        host_id="host",
        response="response",
    )


@pytest.fixture
def mock_minio_client() -> MagicMock:
    """Create a mock MinIO client."""
    return MagicMock()


@pytest.fixture
def storage_service(mock_minio_client: MagicMock) -> StorageService:
    """Create a storage service with mock client."""
    service = StorageService(
        endpoint="localhost:9000",
        access_key="minioadmin",
        secret_key="minioadmin",
        bucket="test-bucket",
        secure=False,
    )
    service._client = mock_minio_client
    return service


class TestStorageService:
    """Tests for StorageService."""

    def test_get_object_path_is_date_partitioned(self, storage_service: StorageService) -> None:
        now = datetime(2026, 3, 9, tzinfo=UTC)
        path = storage_service._get_object_path("my-post-1700000000.png", now)
        assert path == "images/2026/03/my-post-1700000000.png"

    @pytest.mark.parametrize("filename", ["", "../etc/passwd", "a/b.png", ".hidden.png"])
    def test_get_object_path_rejects_unsafe_names(
        self, storage_service: StorageService, filename: str
    ) -> None:
        with pytest.raises(StorageError):
            storage_service._get_object_path(filename)

    async def test_ensure_bucket_exists_creates_bucket(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        """Test bucket creation when it doesn't exist."""
        mock_minio_client.bucket_exists.return_value = False

        await storage_service.ensure_bucket_exists()

        mock_minio_client.bucket_exists.assert_called_once_with("test-bucket")
        mock_minio_client.make_bucket.assert_called_once_with("test-bucket")

    async def test_ensure_bucket_exists_skips_existing(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        mock_minio_client.bucket_exists.return_value = True

        await storage_service.ensure_bucket_exists()

        mock_minio_client.make_bucket.assert_not_called()

    async def test_store_bytes(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        """Test image upload."""
        mock_minio_client.bucket_exists.return_value = True
        image_data = b"fake jpeg data"

        stored = await storage_service.store_bytes("post-1.jpg", image_data, "image/jpeg")

        assert stored.path.startswith("images/")
        assert stored.path.endswith("/post-1.jpg")
        assert stored.url == f"http://localhost:9000/test-bucket/{stored.path}"
        call_args = mock_minio_client.put_object.call_args
        assert call_args[0][0] == "test-bucket"
        assert call_args[0][1] == stored.path
        assert call_args[0][3] == len(image_data)
        assert call_args[0][4] == "image/jpeg"

    async def test_store_bytes_wraps_s3_error(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        mock_minio_client.bucket_exists.return_value = True
        mock_minio_client.put_object.side_effect = make_s3_error("AccessDenied")

        with pytest.raises(StorageError, match="Failed to upload image"):
            await storage_service.store_bytes("post-1.png", b"data", "image/png")

    async def test_store_bytes_wraps_connection_error(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        mock_minio_client.bucket_exists.side_effect = ConnectionError("refused")

        with pytest.raises(StorageError):
            await storage_service.store_bytes("post-1.png", b"data", "image/png")

    async def test_delete_object_ignores_missing(
        self, storage_service: StorageService, mock_minio_client: MagicMock
    ) -> None:
        mock_minio_client.remove_object.side_effect = make_s3_error("NoSuchKey")

        await storage_service.delete_object("images/2026/01/a.png")

        mock_minio_client.remove_object.assert_called_once_with(
            "test-bucket", "images/2026/01/a.png"
        )

    def test_get_public_url_secure(self) -> None:
        """Test public URL generation with HTTPS."""
        service = StorageService(
            endpoint="minio.example.com",
            access_key="key",
            secret_key="secret",
            bucket="bucket",
            secure=True,
        )
        url = service.get_public_url("images/2026/01/a.png")

        assert url == "https://minio.example.com/bucket/images/2026/01/a.png"


class TestStorageServiceConfiguration:
    """Tests for StorageService configuration."""

    async def test_incomplete_configuration_raises_storage_error(self) -> None:
        service = StorageService(endpoint="localhost:9000", access_key="", secret_key="")
        service.access_key = None
        service.secret_key = None

        with pytest.raises(StorageError, match="MinIO configuration incomplete"):
            await service.store_bytes("post.png", b"data", "image/png")
