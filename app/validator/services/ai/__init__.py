"""
AI relay package for shipping document validation.

This package provides:
- prompts: The fixed system prompt and user instruction
- relay: DocumentRelay, fence-stripping and reply parsing
- exceptions: Relay error types
"""

from ...config import get_settings
from .exceptions import RelayConfigurationError, RelayError, RelayInputError
from .prompts import VALIDATION_SYSTEM_PROMPT, VALIDATION_USER_INSTRUCTION
from .relay import (
    PARSE_ERROR_MESSAGE,
    DocumentRelay,
    RelayConfig,
    parse_model_reply,
    strip_markdown_fence,
)

__all__ = [
    "DocumentRelay",
    "RelayConfig",
    "RelayError",
    "RelayConfigurationError",
    "RelayInputError",
    "PARSE_ERROR_MESSAGE",
    "VALIDATION_SYSTEM_PROMPT",
    "VALIDATION_USER_INSTRUCTION",
    "get_document_relay",
    "parse_model_reply",
    "strip_markdown_fence",
]


def get_document_relay() -> DocumentRelay:
    """Build a relay from the current settings (FastAPI dependency)."""
    return DocumentRelay(RelayConfig.from_settings(get_settings()))
