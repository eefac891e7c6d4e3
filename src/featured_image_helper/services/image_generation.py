"""Gemini featured image generation service."""

import asyncio
import base64
import binascii
import re
import time
import weakref
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from featured_image_helper.core.config import Settings, settings
from featured_image_helper.models.generation_log import LogStatus
from featured_image_helper.services.activity_log import ActivityLogger
from featured_image_helper.services.exceptions import (
    EmptyImageError,
    GenerationError,
    InvalidResponseError,
    InvalidSubjectError,
    NoCredentialError,
)
from featured_image_helper.services.http_client import (
    GeminiHttpClient,
    auth_request_parts,
    endpoint_url,
)
from featured_image_helper.services.interfaces import (
    ArticleContent,
    ContentSource,
    MediaStore,
    OptionStore,
)
from featured_image_helper.services.options import (
    API_KEY,
    CONTENT_SOURCE,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_PROMPT_STYLE,
    get_api_key,
    get_option,
)
from featured_image_helper.services.prompt_builder import (
    ContentSourceField,
    CustomPrompt,
    PromptBuilder,
    PromptChoice,
    PromptStyle,
    aspect_ratio_for_size,
)

logger = structlog.get_logger()

IMAGE_SOURCE_TAG = "gemini"
DEFAULT_MIME_TYPE = "image/png"
ALT_TEXT_TEMPLATE = "Featured image for: {title}"
CONNECTION_TEST_PROMPT = "A simple blue sky with white clouds"

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._-]+")

InlineImage = tuple[str, str | None]
ExtractionRule = Callable[[dict[str, Any]], InlineImage | None]


def _camel_case_inline_data(part: dict[str, Any]) -> InlineImage | None:
    inline = part.get("inlineData")
    if isinstance(inline, dict) and inline.get("data"):
        return inline["data"], inline.get("mimeType")
    return None


def _snake_case_inline_data(part: dict[str, Any]) -> InlineImage | None:
    inline = part.get("inline_data")
    if isinstance(inline, dict) and inline.get("data"):
        return inline["data"], inline.get("mime_type")
    return None


# The live API answers in camelCase; older responses used snake_case
IMAGE_EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    _camel_case_inline_data,
    _snake_case_inline_data,
)


def find_inline_image(response: dict[str, Any]) -> tuple[str, str] | None:
    """Locate base64 image data and its MIME type in a generateContent response."""
    try:
        parts = response["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(parts, list):
        return None

    for rule in IMAGE_EXTRACTION_RULES:
        for part in parts:
            if not isinstance(part, dict):
                continue
            match = rule(part)
            if match:
                data, mime_type = match
                return data, mime_type or DEFAULT_MIME_TYPE
    return None


def decode_image(encoded: str) -> bytes:
    """Decode base64 image data.

    Raises:
        EmptyImageError: The data is not valid base64 or decodes to nothing
    """
    try:
        data = base64.b64decode(encoded)
    except (binascii.Error, ValueError) as e:
        raise EmptyImageError("Failed to decode image data from API response.") from e
    if not data:
        raise EmptyImageError("Failed to decode image data from API response.")
    return data


def extension_for_mime_type(mime_type: str) -> str:
    mime_type = mime_type.lower()
    if "jpeg" in mime_type or "jpg" in mime_type:
        return "jpg"
    if "webp" in mime_type:
        return "webp"
    return "png"


def build_image_filename(content: ArticleContent, extension: str, timestamp: int) -> str:
    base = _UNSAFE_FILENAME_RE.sub("-", content.slug).strip("-._")
    if not base:
        base = f"article-{content.subject_id}"
    return f"{base}-{timestamp}.{extension}"


def build_image_request(prompt: str, aspect_ratio: str | None) -> dict[str, Any]:
    """Request body for the image generation call."""
    generation_config: dict[str, Any] = {"responseModalities": ["Image"]}
    if aspect_ratio:
        generation_config["imageConfig"] = {"aspectRatio": aspect_ratio}
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


class SubjectLocks:
    """Per-subject asyncio locks serialising generation for the same article."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock(self, subject_id: int) -> asyncio.Lock:
        lock = self._locks.get(subject_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subject_id] = lock
        return lock

    def is_locked(self, subject_id: int) -> bool:
        lock = self._locks.get(subject_id)
        return lock is not None and lock.locked()


class ImageGenerationService:
    """Generates a featured image for one article and attaches it."""

    def __init__(
        self,
        content: ContentSource,
        media: MediaStore,
        options: OptionStore,
        activity_log: ActivityLogger,
        client: GeminiHttpClient | None = None,
        app_settings: Settings | None = None,
        locks: SubjectLocks | None = None,
    ) -> None:
        self.content = content
        self.media = media
        self.options = options
        self.activity_log = activity_log
        self.client = client or GeminiHttpClient()
        self.settings = app_settings or settings
        self.locks = locks or SubjectLocks()

    async def _resolve_choice(
        self, style: PromptStyle | str | None, custom_prompt: str | None
    ) -> PromptChoice:
        if custom_prompt:
            return CustomPrompt(custom_prompt)
        if isinstance(style, PromptStyle):
            return style
        if style is None:
            style = await get_option(self.options, DEFAULT_PROMPT_STYLE)
        return PromptStyle.from_setting(style)

    async def _request_image(
        self, api_key: str, prompt: str, aspect_ratio: str | None
    ) -> dict[str, Any]:
        headers, params = auth_request_parts(api_key, self.settings.gemini_auth_mode)
        return await self.client.post(
            endpoint_url(self.settings.gemini_api_base_url, self.settings.gemini_image_model),
            headers=headers,
            body=build_image_request(prompt, aspect_ratio),
            timeout=self.settings.gemini_image_timeout_seconds,
            params=params,
        )

    async def generate(
        self,
        subject_id: int,
        style: PromptStyle | str | None = None,
        custom_prompt: str | None = None,
    ) -> int:
        """Generate, store and attach a featured image for an article.

        Args:
            subject_id: Article ID
            style: Prompt style; defaults to the stored default style
            custom_prompt: Prompt used verbatim, skipping prompt building

        Returns:
            The new attachment ID

        Raises:
            GenerationError: Any failure; nothing is attached in that case
        """
        api_key = await get_api_key(self.options, self.settings)
        if not api_key:
            raise NoCredentialError()

        async with self.locks.lock(subject_id):
            return await self._generate(subject_id, api_key, style, custom_prompt)

    async def _generate(
        self,
        subject_id: int,
        api_key: str,
        style: PromptStyle | str | None,
        custom_prompt: str | None,
    ) -> int:
        start = time.monotonic()

        content = await self.content.get_content(subject_id)
        if content is None:
            raise InvalidSubjectError(subject_id)

        choice = await self._resolve_choice(style, custom_prompt)
        source = ContentSourceField.from_setting(await get_option(self.options, CONTENT_SOURCE))
        builder = PromptBuilder(self.client, api_key, self.settings)
        prompt = await builder.build(content, choice, source)
        aspect_ratio = aspect_ratio_for_size(await get_option(self.options, DEFAULT_IMAGE_SIZE))

        logger.info(
            "Generating featured image",
            subject_id=subject_id,
            style=choice.value if isinstance(choice, PromptStyle) else "custom",
            aspect_ratio=aspect_ratio,
        )

        try:
            response = await self._request_image(api_key, prompt, aspect_ratio)
            attachment_id = await self._save_image(response, content)
            await self._write_metadata(attachment_id, content)
            # Only feature the image once its metadata is complete
            await self.media.set_as_featured(subject_id, attachment_id)
        except GenerationError as e:
            elapsed = time.monotonic() - start
            logger.warning(
                "Featured image generation failed",
                subject_id=subject_id,
                error=str(e),
                error_code=e.code,
                duration=round(elapsed, 2),
            )
            await self.activity_log.log(subject_id, prompt, LogStatus.ERROR, str(e), elapsed)
            raise

        elapsed = time.monotonic() - start
        await self.activity_log.log(subject_id, prompt, LogStatus.SUCCESS, "", elapsed)
        logger.info(
            "Featured image generated",
            subject_id=subject_id,
            attachment_id=attachment_id,
            duration=round(elapsed, 2),
        )
        return attachment_id

    async def _save_image(self, response: dict[str, Any], content: ArticleContent) -> int:
        inline = find_inline_image(response)
        if inline is None:
            logger.error(
                "Invalid image response structure",
                subject_id=content.subject_id,
                keys=sorted(response.keys()),
            )
            raise InvalidResponseError(
                "Invalid image data returned from API. Please check your API key "
                "and ensure it has access to the image model."
            )

        encoded, mime_type = inline
        image_data = decode_image(encoded)
        filename = build_image_filename(
            content, extension_for_mime_type(mime_type), int(time.time())
        )

        stored = await self.media.store_bytes(filename, image_data, mime_type)
        return await self.media.attach(stored, content.subject_id, mime_type, content.title)

    async def _write_metadata(self, attachment_id: int, content: ArticleContent) -> None:
        metadata = {
            "alt_text": ALT_TEXT_TEMPLATE.format(title=content.title),
            "generated": "1",
            "source": IMAGE_SOURCE_TAG,
            "generated_at": datetime.now(UTC).isoformat(),
        }
        for key, value in metadata.items():
            await self.media.write_metadata(attachment_id, key, value)

    async def test_connection(self) -> float:
        """Send a fixed prompt to the image model and audit the outcome.

        Returns:
            Round-trip time in seconds

        Raises:
            GenerationError: The key is missing or the API call failed
        """
        start = time.monotonic()
        api_key = await get_api_key(self.options, self.settings)
        if not api_key:
            await self.activity_log.log_api_event(
                "api_test", "API test failed: No API key configured", LogStatus.ERROR
            )
            raise NoCredentialError()

        try:
            response = await self._request_image(
                api_key, CONNECTION_TEST_PROMPT, aspect_ratio=None
            )
        except GenerationError as e:
            elapsed = time.monotonic() - start
            await self.activity_log.log_api_event(
                "api_test", f"API test failed: {e} (Time: {elapsed:.2f}s)", LogStatus.ERROR
            )
            raise

        elapsed = time.monotonic() - start
        if find_inline_image(response) is None:
            await self.activity_log.log_api_event(
                "api_test",
                f"API test failed: Invalid response format (Time: {elapsed:.2f}s)",
                LogStatus.ERROR,
            )
            raise InvalidResponseError(
                "API returned an unexpected response format. Please verify your API key "
                "has access to the image model."
            )

        await self.activity_log.log_api_event(
            "api_test",
            f"API test successful! The image model is reachable and returned an image. "
            f"(Time: {elapsed:.2f}s)",
            LogStatus.SUCCESS,
        )
        return elapsed

    async def save_api_key(self, api_key: str) -> None:
        """Store the API key option and audit the change."""
        await self.options.set(API_KEY, api_key.strip())
        await self.record_credential_saved()

    async def record_credential_saved(self) -> None:
        await self.activity_log.log_api_event("api_key_saved", "API key updated", LogStatus.INFO)
