"""Prompt building for featured image generation.

Prompts are built in two stages:

1. Concept extraction: the article text is sent to the Gemini text model,
   which rewrites it as a short, brand-neutral visual scene (no logos,
   uniforms, branded products or people).
2. Template assembly: the scene is placed into a SPLICE template
   (Style, Perspective, Lighting, Identity, Context, Emotion) for the
   requested style.

A CustomPrompt skips both stages and is sent as-is.
"""

import re
from dataclasses import dataclass
from enum import Enum
from math import gcd
from typing import Any

import structlog
from bs4 import BeautifulSoup

from featured_image_helper.core.config import Settings, settings
from featured_image_helper.services.exceptions import GenerationError, InvalidResponseError
from featured_image_helper.services.http_client import (
    GeminiHttpClient,
    auth_request_parts,
    endpoint_url,
)
from featured_image_helper.services.interfaces import ArticleContent

logger = structlog.get_logger()

PLACEHOLDER = "{content}"

EXCERPT_FALLBACK_WORDS = 55
CONTENT_WORDS = 100


class PromptStyle(str, Enum):
    """Built-in prompt template styles."""

    PHOTOGRAPHIC = "photographic"
    ILLUSTRATION = "illustration"
    ABSTRACT = "abstract"
    MINIMAL = "minimal"

    @classmethod
    def from_setting(cls, value: Any) -> "PromptStyle":
        """Parse a stored style name; anything unrecognised is photographic."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PHOTOGRAPHIC


@dataclass(frozen=True)
class CustomPrompt:
    """A caller-supplied prompt used verbatim."""

    text: str


PromptChoice = PromptStyle | CustomPrompt


class ContentSourceField(str, Enum):
    """Which part of the article feeds the prompt."""

    TITLE = "title"
    EXCERPT = "excerpt"
    CONTENT = "content"

    @classmethod
    def from_setting(cls, value: Any) -> "ContentSourceField":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.TITLE


_NO_TEXT_RULE = "Rules: No text, no words, no letters, no captions"

PROMPT_TEMPLATES: dict[PromptStyle, str] = {
    PromptStyle.PHOTOGRAPHIC: f"""Style: Professional photorealistic photograph, high-quality digital photography
Perspective: Centered composition, balanced framing, professional editorial layout
Lighting: Natural, well-lit, soft professional lighting with good contrast and depth
Subject: {PLACEHOLDER}
Context: Modern, professional setting with clean background, sharp focus on main subject
Emotion: Authoritative, trustworthy, clear and informative

{_NO_TEXT_RULE}""",
    PromptStyle.ILLUSTRATION: f"""Style: Beautiful digital illustration, artistic rendering, hand-drawn aesthetic
Perspective: Dynamic composition with interesting angles and visual flow
Lighting: Vibrant, colorful lighting with artistic highlights and shadows
Subject: {PLACEHOLDER}
Context: Rich visual details, artistic interpretation, creative elements
Emotion: Engaging, creative, visually appealing and memorable

{_NO_TEXT_RULE}""",
    PromptStyle.ABSTRACT: f"""Style: Modern abstract art, bold geometric or organic shapes
Perspective: Dynamic composition with visual movement and balance
Lighting: Dramatic lighting with strong contrast, bold color relationships
Subject: Abstract visual representation of {PLACEHOLDER}
Context: Contemporary art style, sophisticated color palette, artistic interpretation
Emotion: Thought-provoking, energetic, conceptual and expressive

{_NO_TEXT_RULE}""",
    PromptStyle.MINIMAL: f"""Style: Clean minimalist design, simple geometric forms
Perspective: Symmetrical or intentionally asymmetric composition, plenty of negative space
Lighting: Soft, even lighting with subtle gradients, clean and bright
Subject: Minimalist representation of {PLACEHOLDER}
Context: Simple, elegant, uncluttered visual with essential elements only
Emotion: Calm, sophisticated, clear and purposeful

{_NO_TEXT_RULE}""",
}

CONCEPT_ANALYSIS_PROMPT = """Identify any companies or organizations mentioned in this title. \
Determine what INDUSTRY or TYPE OF ACTIVITY that organization does (e.g., postal service, \
banking, retail, technology, etc.). Then describe a simple photographic scene showing \
INANIMATE OBJECTS or SETTINGS related to that industry. Prioritize common objects (tools, \
equipment, products) over people. Do NOT show company uniforms, branded products, logos, \
or organizational identifiers. Keep it simple and generic. Use 2-3 sentences maximum.

Title: "{content}"

Visual scene:"""

# Aspect ratios supported by the image model
SUPPORTED_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

# Checked in order when the reduced ratio is not an exact match
_NEAREST_RATIOS = (
    (1.0, "1:1"),
    (0.75, "3:4"),
    (1.33, "4:3"),
    (0.5625, "9:16"),
    (1.78, "16:9"),
)
RATIO_TOLERANCE = 0.1

_WHITESPACE_RE = re.compile(r"\s+")
_SURROUNDING_QUOTES_RE = re.compile(r"^[\"'“”‘’]+|[\"'“”‘’]+$")
_MARKDOWN_RE = re.compile(r"(\*\*|__|`+|^#+\s*|^\s*[-*]\s+)", re.MULTILINE)


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_html(text: str) -> str:
    """Remove HTML tags and collapse whitespace."""
    if not text:
        return ""
    return normalize_whitespace(BeautifulSoup(text, "html.parser").get_text(" "))


def trim_words(text: str, limit: int) -> str:
    return " ".join(text.split()[:limit])


def select_source_text(content: ArticleContent, source: ContentSourceField) -> str:
    """Pick and sanitize the article text that seeds the prompt."""
    if source is ContentSourceField.EXCERPT:
        excerpt = strip_html(content.excerpt)
        if excerpt:
            return excerpt
        return trim_words(strip_html(content.body), EXCERPT_FALLBACK_WORDS)
    if source is ContentSourceField.CONTENT:
        return trim_words(strip_html(content.body), CONTENT_WORDS)
    return strip_html(content.title)


def clean_concept(text: str) -> str:
    """Strip markdown and surrounding quotes from a model-written scene."""
    cleaned = _MARKDOWN_RE.sub("", text.strip())
    cleaned = normalize_whitespace(cleaned)
    return _SURROUNDING_QUOTES_RE.sub("", cleaned).strip()


def apply_template(style: PromptStyle, content: str) -> str:
    return PROMPT_TEMPLATES[style].replace(PLACEHOLDER, content)


def reduce_ratio(width: int, height: int) -> tuple[int, int]:
    divisor = gcd(width, height)
    return width // divisor, height // divisor


def parse_size(size: str) -> tuple[int, int] | None:
    """Parse a WIDTHxHEIGHT string; None when malformed or non-positive."""
    parts = size.strip().lower().split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def aspect_ratio_for_size(size: str | None) -> str | None:
    """Map a WIDTHxHEIGHT size to the closest supported aspect ratio."""
    if not size:
        return None
    dimensions = parse_size(size)
    if dimensions is None:
        return None

    width, height = dimensions
    ratio_width, ratio_height = reduce_ratio(width, height)
    exact = f"{ratio_width}:{ratio_height}"
    if exact in SUPPORTED_ASPECT_RATIOS:
        return exact

    ratio = width / height
    for target, label in _NEAREST_RATIOS:
        if abs(ratio - target) < RATIO_TOLERANCE:
            return label

    return "16:9" if ratio >= 1 else "9:16"


def build_concept_request(content: str) -> dict[str, Any]:
    """Request body for the concept extraction text call."""
    return {
        "contents": [{"parts": [{"text": CONCEPT_ANALYSIS_PROMPT.format(content=content)}]}],
        "generationConfig": {
            "temperature": 0.7,
            "maxOutputTokens": 1000,
            "thinkingConfig": {"thinkingBudget": 0},
        },
        "tools": [{"google_search": {}}],
    }


def extract_text(data: dict[str, Any]) -> str | None:
    """Return candidates[0].content.parts[0].text, if present."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class PromptBuilder:
    """Turns article content into the final image prompt."""

    def __init__(
        self,
        client: GeminiHttpClient,
        api_key: str,
        app_settings: Settings | None = None,
        concept_extraction: bool | None = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.settings = app_settings or settings
        self.concept_extraction = (
            concept_extraction
            if concept_extraction is not None
            else self.settings.concept_extraction_enabled
        )

    async def extract_concept(self, content: str) -> str:
        """Ask the text model for a brand-neutral visual scene.

        Raises:
            GenerationError: The call failed or returned no usable text
        """
        headers, params = auth_request_parts(self.api_key, self.settings.gemini_auth_mode)
        data = await self.client.post(
            endpoint_url(self.settings.gemini_api_base_url, self.settings.gemini_text_model),
            headers=headers,
            body=build_concept_request(content),
            timeout=self.settings.gemini_text_timeout_seconds,
            params=params,
        )
        text = extract_text(data)
        concept = clean_concept(text) if text else ""
        if not concept:
            raise InvalidResponseError("Failed to generate visual concept from API response.")
        return concept

    async def build(
        self,
        content: ArticleContent,
        choice: PromptChoice,
        source: ContentSourceField = ContentSourceField.TITLE,
    ) -> str:
        """Build the final prompt for an article."""
        if isinstance(choice, CustomPrompt):
            return choice.text

        subject = select_source_text(content, source)

        if self.concept_extraction:
            try:
                subject = await self.extract_concept(subject)
            except GenerationError as e:
                # Literal content is still a usable prompt
                logger.warning(
                    "concept_extraction_failed",
                    subject_id=content.subject_id,
                    error=str(e),
                )

        return apply_template(choice, subject)
