"""Test fixtures and configuration."""

import base64
import json
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from featured_image_helper import __version__
from featured_image_helper.api.routes import router
from featured_image_helper.core.config import Settings
from featured_image_helper.core.database import get_session
from featured_image_helper.models import Base
from featured_image_helper.services.interfaces import StoredObject

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
async def test_engine() -> AsyncIterator[AsyncEngine]:
    """In-memory database with every table created."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Provide a session on the test database."""
    async with test_session_factory() as session:
        yield session


def create_api_test_app(session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Create a test FastAPI app for API testing (no scheduler, no MCP)."""
    test_app = FastAPI(title="Featured Image Helper Test")

    # Include the production API router
    test_app.include_router(router)

    async def get_test_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    # Override the database session dependency
    test_app.dependency_overrides[get_session] = get_test_session

    @test_app.get("/")
    async def root() -> dict[str, str]:
        return {"name": "Featured Image Helper", "version": __version__, "docs": "/docs"}

    return test_app


@pytest.fixture
async def async_client(
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    """Create async test client for API testing with test database."""
    test_app = create_api_test_app(test_session_factory)

    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Create sync test client for the production app with the scheduler disabled."""
    with (
        patch("featured_image_helper.main.scheduler") as mock_scheduler,
        patch(
            "featured_image_helper.main.get_queue_interval_minutes",
            AsyncMock(return_value=5),
        ),
    ):
        mock_scheduler.start = lambda: None
        mock_scheduler.shutdown = lambda: None
        mock_scheduler.add_job = lambda *args, **kwargs: None

        # Import after patching to get the patched version
        from featured_image_helper.main import app

        with TestClient(app) as tc:
            yield tc

        app.dependency_overrides.clear()


@pytest.fixture
def app_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        gemini_api_base_url="https://gemini.test/v1beta/models",
        concept_extraction_enabled=True,
        admin_email=None,
        webhook_secret=None,
    )


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


class FakeMediaStore:
    """MediaStore keeping everything in memory."""

    def __init__(self) -> None:
        self.stored: list[tuple[str, bytes, str]] = []
        self.attachments: dict[int, dict[str, Any]] = {}
        self.featured: dict[int, int] = {}
        self.metadata: dict[int, dict[str, str]] = {}
        self.fail_store: Exception | None = None

    async def store_bytes(self, filename: str, data: bytes, mime_type: str) -> StoredObject:
        if self.fail_store is not None:
            raise self.fail_store
        self.stored.append((filename, data, mime_type))
        path = f"images/2026/10/{filename}"
        return StoredObject(path=path, url=f"http://media.test/{path}")

    async def attach(
        self, stored: StoredObject, subject_id: int, mime_type: str, title: str
    ) -> int:
        attachment_id = len(self.attachments) + 100
        self.attachments[attachment_id] = {
            "path": stored.path,
            "subject_id": subject_id,
            "mime_type": mime_type,
            "title": title,
        }
        return attachment_id

    async def set_as_featured(self, subject_id: int, attachment_id: int) -> None:
        self.featured[subject_id] = attachment_id

    async def write_metadata(self, attachment_id: int, key: str, value: str) -> None:
        self.metadata.setdefault(attachment_id, {})[key] = value


@pytest.fixture
def fake_media() -> FakeMediaStore:
    return FakeMediaStore()


class InMemoryOptionStore:
    """OptionStore backed by a dict."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(values or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        self.values[key] = value


@pytest.fixture
def memory_options() -> InMemoryOptionStore:
    return InMemoryOptionStore()


@pytest.fixture
def image_response() -> Callable[..., dict[str, Any]]:
    """Build a generateContent image response."""

    def build(
        data: bytes = PNG_BYTES,
        mime_type: str = "image/png",
        snake_case: bool = False,
        with_text_part: bool = False,
    ) -> dict[str, Any]:
        encoded = base64.b64encode(data).decode()
        if snake_case:
            part = {"inline_data": {"data": encoded, "mime_type": mime_type}}
        else:
            part = {"inlineData": {"data": encoded, "mimeType": mime_type}}
        parts: list[dict[str, Any]] = [part]
        if with_text_part:
            parts.insert(0, {"text": "Here is your image"})
        return {"candidates": [{"content": {"parts": parts}}]}

    return build


@pytest.fixture
def text_response() -> Callable[[str], dict[str, Any]]:
    """Build a generateContent text response."""

    def build(text: str) -> dict[str, Any]:
        return {"candidates": [{"content": {"parts": [{"text": text}]}}]}

    return build


class GeminiStub:
    """httpx MockTransport handler answering text and image model calls."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.text_responses: list[httpx.Response] = []
        self.image_responses: list[httpx.Response] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.image_responses if "image" in request.url.path else self.text_responses
        if not queue:
            return httpx.Response(500, json={"error": {"message": "no stubbed response"}})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def gemini_stub() -> GeminiStub:
    return GeminiStub()
