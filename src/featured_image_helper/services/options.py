"""Operator options stored in the key/value options table."""

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.core.config import Settings, settings
from featured_image_helper.models.option import Option
from featured_image_helper.services.interfaces import OptionStore

# Option keys
API_KEY = "gemini_api_key"
DEFAULT_PROMPT_STYLE = "default_prompt_style"
CONTENT_SOURCE = "content_source"
DEFAULT_IMAGE_SIZE = "default_image_size"
BATCH_SIZE = "batch_size"
QUEUE_INTERVAL = "queue_interval"
LOG_RETENTION_DAYS = "log_retention_days"
DEBUG_LOGGING_ENABLED = "debug_logging_enabled"
SEND_COMPLETION_EMAIL = "send_completion_email"
ADMIN_EMAIL = "admin_email"
QUEUE_PAUSED = "queue_paused"
AUTO_GENERATE_ENABLED = "auto_generate_enabled"
AUTO_GENERATE_TRIGGER = "auto_generate_trigger"

DEFAULT_OPTIONS: dict[str, Any] = {
    DEFAULT_PROMPT_STYLE: "photographic",
    CONTENT_SOURCE: "title",
    DEFAULT_IMAGE_SIZE: "1200x630",
    BATCH_SIZE: 5,
    QUEUE_INTERVAL: 5,
    LOG_RETENTION_DAYS: 7,
    DEBUG_LOGGING_ENABLED: False,
    SEND_COMPLETION_EMAIL: True,
    QUEUE_PAUSED: False,
    AUTO_GENERATE_ENABLED: False,
    AUTO_GENERATE_TRIGGER: "manual",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def as_bool(value: Any) -> bool:
    """Coerce a stored option value to a boolean."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def as_int(value: Any, default: int) -> int:
    """Coerce a stored option value to an int, falling back on bad input."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class DatabaseOptionStore:
    """OptionStore backed by the options table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str, default: Any = None) -> Any:
        result = await self.session.execute(select(Option.value).where(Option.name == key))
        row = result.first()
        if row is None or row[0] is None:
            return default
        return row[0]

    async def set(self, key: str, value: Any) -> None:
        await self.session.merge(Option(name=key, value=value))
        await self.session.commit()

    async def delete(self, key: str) -> None:
        await self.session.execute(delete(Option).where(Option.name == key))
        await self.session.commit()


async def get_option(store: OptionStore, key: str) -> Any:
    """Read an option, falling back to its documented default."""
    return await store.get(key, DEFAULT_OPTIONS.get(key))


async def get_api_key(store: OptionStore, app_settings: Settings | None = None) -> str:
    """Resolve the Gemini API key.

    The GEMINI_API_KEY environment setting wins over the stored option.
    """
    app_settings = app_settings or settings
    if app_settings.gemini_api_key:
        return app_settings.gemini_api_key
    value = await store.get(API_KEY, "")
    return str(value or "")
