"""HTTP client for the Gemini generateContent API with retry and backoff."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from featured_image_helper.services.exceptions import ApiError, TransportError

logger = structlog.get_logger()

MAX_RETRIES = 3
UNKNOWN_API_ERROR = "Unknown API error"

Sleeper = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retry number ``attempt + 1`` (1s, 2s, 4s)."""
    return float(2**attempt)


def extract_error_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return UNKNOWN_API_ERROR

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return UNKNOWN_API_ERROR


class GeminiHttpClient:
    """Stateless POST wrapper shared by the text and image calls.

    Transport failures and 5xx responses share one retry budget of
    MAX_RETRIES; 4xx responses are surfaced immediately.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper | None = None,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.transport = transport
        self.sleep = sleep or asyncio.sleep
        self.max_retries = max_retries

    async def post(
        self,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any],
        timeout: float,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON body and return the parsed JSON response.

        Raises:
            TransportError: Network failure persisted through every retry
            ApiError: Non-200 response (after retries for 5xx)
        """
        attempt = 0
        while True:
            try:
                async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as client:
                    response = await client.post(url, headers=headers, json=body, params=params)
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    await self._backoff(attempt, reason="transport", error=str(e))
                    attempt += 1
                    continue
                logger.error("gemini_transport_failed", attempts=attempt + 1, error=str(e))
                raise TransportError(str(e) or e.__class__.__name__) from e

            if response.status_code == 200:
                try:
                    data: dict[str, Any] = response.json()
                except ValueError as e:
                    raise ApiError("Response body is not valid JSON", response.status_code) from e
                return data

            message = extract_error_message(response)

            if response.status_code >= 500 and attempt < self.max_retries:
                await self._backoff(
                    attempt, reason="server_error", status_code=response.status_code
                )
                attempt += 1
                continue

            logger.warning(
                "gemini_api_error",
                status_code=response.status_code,
                attempts=attempt + 1,
                error=message,
            )
            raise ApiError(message, response.status_code)

    async def _backoff(self, attempt: int, **context: Any) -> None:
        delay = backoff_delay(attempt)
        logger.warning(
            "gemini_request_retrying",
            attempt=attempt + 1,
            max_retries=self.max_retries,
            wait_time=delay,
            **context,
        )
        await self.sleep(delay)


def endpoint_url(base_url: str, model: str) -> str:
    """Build the generateContent URL for a model."""
    return f"{base_url.rstrip('/')}/{model}:generateContent"


def auth_request_parts(
    api_key: str, mode: str = "header"
) -> tuple[dict[str, str], dict[str, str] | None]:
    """Headers and query params carrying the API key.

    ``mode`` is "header" (x-goog-api-key) or "query" (?key=...).
    """
    headers = {"Content-Type": "application/json"}
    if mode == "query":
        return headers, {"key": api_key}
    headers["x-goog-api-key"] = api_key
    return headers, None
