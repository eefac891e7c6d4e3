"""Error hierarchy for featured image generation.

- GenerationError: Base for every failure surfaced by generation
- NoCredentialError / InvalidSubjectError: precondition failures
- TransportError / ApiError: upstream failures after retries
- InvalidResponseError / EmptyImageError: unusable API payloads
- StorageError: the media store rejected the image
"""


class GenerationError(Exception):
    """Base exception for all generation errors."""

    code = "generation_error"


class NoCredentialError(GenerationError):
    """Gemini API key is not configured."""

    code = "no_api_key"

    def __init__(self, message: str = "Gemini API key is not configured.") -> None:
        super().__init__(message)


class InvalidSubjectError(GenerationError):
    """The subject does not resolve to an existing article."""

    code = "invalid_subject"

    def __init__(self, subject_id: int) -> None:
        self.subject_id = subject_id
        super().__init__(f"Invalid subject ID: {subject_id}")


class TransportError(GenerationError):
    """Network failure (DNS, connection, timeout) after all retries."""

    code = "transport_error"


class ApiError(GenerationError):
    """Non-200 response from the API.

    Raised immediately for 4xx responses and after retries for 5xx.
    """

    code = "api_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidResponseError(GenerationError):
    """Response contained no decodable image data."""

    code = "invalid_response"


class EmptyImageError(GenerationError):
    """Image data decoded to zero bytes."""

    code = "empty_image"


class StorageError(GenerationError):
    """Persisting the generated image failed."""

    code = "storage_error"
