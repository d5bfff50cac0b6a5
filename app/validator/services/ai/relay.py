"""
Document relay: forwards one PDF to the Anthropic Messages API and
normalizes the reply into a relay envelope.

The model is treated as an unreliable text oracle. Replies that are not a
JSON object (after markdown fence-stripping) are returned as a raw fallback
result instead of raising.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from anthropic import AsyncAnthropic

from ...config import Settings
from ...models import PDF_MEDIA_TYPE, RawFallback, RelaySuccess, TokenUsage
from .exceptions import RelayConfigurationError
from .prompts import VALIDATION_SYSTEM_PROMPT, VALIDATION_USER_INSTRUCTION

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 4096
PARSE_ERROR_MESSAGE = "Could not parse JSON response"

_JSON_FENCE_OPEN = re.compile(r"^```json\n")
_PLAIN_FENCE_OPEN = re.compile(r"^```\n")
_FENCE_CLOSE = re.compile(r"\n```$")

ClientFactory = Callable[[str], Any]


@dataclass(frozen=True)
class RelayConfig:
    """Explicit configuration for a DocumentRelay."""

    api_key: str | None
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayConfig":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.max_output_tokens,
        )


# =============================================================================
# Reply Normalization
# =============================================================================


def strip_markdown_fence(text: str) -> str:
    """
    Remove a markdown code fence wrapping the whole reply.

    Only a fence at the very start and end of the text is removed, either
    ```` ```json ```` or a plain ```` ``` ````. Fences elsewhere are left alone.
    """
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = _FENCE_CLOSE.sub("", _JSON_FENCE_OPEN.sub("", cleaned))
    elif cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _PLAIN_FENCE_OPEN.sub("", cleaned))
    return cleaned


def parse_model_reply(text: str) -> dict[str, Any]:
    """
    Parse the model's reply into a result object.

    Args:
        text: Free-text reply from the model.

    Returns:
        The parsed JSON object, or a ``{"rawResponse", "parseError"}`` object
        when the reply is not a JSON object.
    """
    cleaned = strip_markdown_fence(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("JSON parse error: %s", e)
        logger.error("Cleaned text: %s", cleaned[:500])
        return _raw_fallback(cleaned)

    if not isinstance(parsed, dict):
        logger.error("Model reply is JSON but not an object: %s", type(parsed).__name__)
        return _raw_fallback(cleaned)

    return parsed


def _raw_fallback(cleaned: str) -> dict[str, Any]:
    return RawFallback(
        raw_response=cleaned,
        parse_error=PARSE_ERROR_MESSAGE,
    ).model_dump(by_alias=True)


def _reply_text(message: Any) -> str:
    """Text of the first content block, or an empty string."""
    content = getattr(message, "content", None) or []
    if not content:
        return ""
    first = content[0]
    if getattr(first, "type", None) == "text":
        return first.text or ""
    return ""


def _default_client_factory(api_key: str) -> AsyncAnthropic:
    return AsyncAnthropic(api_key=api_key)


# =============================================================================
# Relay
# =============================================================================


class DocumentRelay:
    """
    Sends documents to the inference API, one call per document.

    A fresh API client is built for every call and closed afterwards, so
    relay instances hold no connection state between requests.
    """

    def __init__(
        self,
        config: RelayConfig,
        client_factory: ClientFactory | None = None,
    ):
        """
        Initialize the relay.

        Args:
            config: Credential, model and token budget to use.
            client_factory: Builds an async Anthropic-compatible client from an
                API key. Defaults to ``anthropic.AsyncAnthropic``.
        """
        self.config = config
        self._client_factory = client_factory or _default_client_factory

    def ensure_configured(self) -> None:
        """Raise RelayConfigurationError if no API key is available."""
        if not self.config.api_key:
            raise RelayConfigurationError("ANTHROPIC_API_KEY not configured")

    def build_request(self, data: bytes, media_type: str) -> dict[str, Any]:
        """Build the Messages API request for one document."""
        encoded = base64.b64encode(data).decode("utf-8")
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "system": VALIDATION_SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": VALIDATION_USER_INSTRUCTION},
                        {
                            "type": "document",
                            "source": {
                                "type": "base64",
                                "media_type": media_type or PDF_MEDIA_TYPE,
                                "data": encoded,
                            },
                        },
                    ],
                }
            ],
        }

    async def validate(
        self,
        data: bytes,
        media_type: str,
        filename: str = "document.pdf",
    ) -> RelaySuccess:
        """
        Validate one document.

        Args:
            data: Raw file bytes.
            media_type: Declared media type, forwarded unchanged.
            filename: Original filename, used for logging only.

        Returns:
            RelaySuccess carrying the parsed result (or raw fallback) and usage.

        Raises:
            RelayConfigurationError: If no API key is configured.
        """
        self.ensure_configured()

        logger.info(
            "Processing file: %s, size: %d, type: %s",
            filename,
            len(data),
            media_type,
        )

        client = self._client_factory(self.config.api_key)
        try:
            message = await client.messages.create(**self.build_request(data, media_type))
        finally:
            await client.close()

        response_text = _reply_text(message)
        logger.info("Raw model response: %s", response_text[:200])

        usage = getattr(message, "usage", None)
        return RelaySuccess(
            result=parse_model_reply(response_text),
            usage=TokenUsage(
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
            )
            if usage is not None
            else None,
        )
