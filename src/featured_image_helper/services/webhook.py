"""Content event webhook processing and auto-generation trigger."""

import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from featured_image_helper.services.image_queue import QueueStore
from featured_image_helper.services.interfaces import ContentSource, OptionStore
from featured_image_helper.services.options import (
    AUTO_GENERATE_ENABLED,
    AUTO_GENERATE_TRIGGER,
    as_bool,
    get_option,
)

logger = structlog.get_logger()

PUBLISH_PRIORITY = 10
UPDATE_PRIORITY = 5


class AutoGenerateTrigger(str, Enum):
    """Which content events enqueue an article automatically."""

    MANUAL = "manual"
    PUBLISH = "publish"
    UPDATE = "update"

    @classmethod
    def from_setting(cls, value: Any) -> "AutoGenerateTrigger":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MANUAL


class ContentEventType(str, Enum):
    PUBLISH = "publish"
    UPDATE = "update"


@dataclass
class ContentEvent:
    """A publish or update notification from the content platform."""

    event: ContentEventType
    article_id: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ContentEvent | None":
        """Parse a webhook payload; None when it is not a usable content event."""
        try:
            event = ContentEventType(str(payload.get("event", "")).lower())
            article_id = int(payload["article_id"])
        except (KeyError, TypeError, ValueError):
            return None
        return cls(event=event, article_id=article_id)


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a webhook signature (SHA-256).

    The signature header is 'sha256=<hex_digest>', the HMAC-SHA256 of the
    raw body keyed with the shared webhook secret.
    """
    if not signature.startswith("sha256="):
        return False

    expected = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(f"sha256={expected}", signature)


async def handle_content_event(
    event: ContentEvent,
    options: OptionStore,
    content: ContentSource,
    queue: QueueStore,
) -> str:
    """Enqueue the article if the configured trigger matches the event."""
    if not as_bool(await get_option(options, AUTO_GENERATE_ENABLED)):
        return "auto generation disabled"

    trigger = AutoGenerateTrigger.from_setting(await get_option(options, AUTO_GENERATE_TRIGGER))
    if trigger.value != event.event.value:
        return f"trigger is {trigger.value}, ignoring {event.event.value}"

    article = await content.get_content(event.article_id)
    if article is None:
        return f"article {event.article_id} not found"
    if article.has_featured_image:
        return f"article {event.article_id} already has a featured image"
    if event.event is ContentEventType.UPDATE and not article.published:
        return f"article {event.article_id} is not published"

    priority = PUBLISH_PRIORITY if event.event is ContentEventType.PUBLISH else UPDATE_PRIORITY
    item = await queue.enqueue(event.article_id, priority)
    if item is None:
        return f"article {event.article_id} already queued"

    logger.info(
        "webhook_article_queued",
        article_id=event.article_id,
        content_event=event.event.value,
        priority=priority,
        item_id=item.id,
    )
    return f"article {event.article_id} queued"
