"""Collaborator interfaces injected into the generation pipeline."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class ArticleContent:
    """The article fields prompt building and attachment need."""

    subject_id: int
    title: str
    excerpt: str
    body: str
    slug: str
    has_featured_image: bool = False
    published: bool = False


@dataclass
class StoredObject:
    """Handle returned by the media store for uploaded bytes."""

    path: str
    url: str


class ContentSource(Protocol):
    """Looks up article content by subject ID."""

    async def get_content(self, subject_id: int) -> ArticleContent | None: ...


class OptionStore(Protocol):
    """Generic key/value operator settings."""

    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class MediaStore(Protocol):
    """Stores image bytes and records them in the media library."""

    async def store_bytes(self, filename: str, data: bytes, mime_type: str) -> StoredObject: ...

    async def attach(
        self, stored: StoredObject, subject_id: int, mime_type: str, title: str
    ) -> int: ...

    async def set_as_featured(self, subject_id: int, attachment_id: int) -> None: ...

    async def write_metadata(self, attachment_id: int, key: str, value: str) -> None: ...


class Notifier(Protocol):
    """Sends operator notifications."""

    async def send_email(self, to: str, subject: str, body: str) -> None: ...
