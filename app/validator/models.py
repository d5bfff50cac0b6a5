"""
Pydantic models for the document validation pipeline.

Wire format uses camelCase keys (``validationStatus``, ``rawResponse``...);
every model also accepts snake_case field names when constructed in Python.
"""

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PDF_MEDIA_TYPE = "application/pdf"


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Validation Result (tagged union: ValidationResult | RawFallback)
# =============================================================================


class ValidationStatus(str, Enum):
    """Overall verdict reported by the model."""

    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


class Severity(str, Enum):
    """Severity of a single validation issue."""

    ERROR = "ERROR"
    WARNING = "WARNING"


def _as_text(value: Any) -> str | None:
    """Coerce a scalar the model returned into display text."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return json.dumps(value)
    return str(value)


class Issue(CamelModel):
    """
    A problem the model found with one field.

    ``severity`` is expected to be ERROR or WARNING but is kept as given.
    """

    field: str | None = Field(default=None, description="Field the issue refers to")
    severity: str | None = Field(default=None, description="ERROR or WARNING")
    message: str | None = Field(default=None, description="Human-readable explanation")

    @field_validator("field", "severity", "message", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str | None:
        return _as_text(value)


class ValidationResult(CamelModel):
    """
    Structured result of a document validation.

    Every key is optional because the model may omit any of them. Keys the
    model adds beyond these are kept as extra attributes. Scalars outside the
    documented vocabulary (an unknown status, a confidence above 1) are kept
    as given; only a wrongly shaped ``extractedFields`` or ``issues`` fails
    validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    document_type: str | None = Field(
        default=None,
        description="Detected document type",
        examples=["HBL", "Invoice", "PackingList"],
    )
    extracted_fields: dict[str, Any] | None = Field(
        default=None,
        description="Extracted values; nested objects for grouped fields",
    )
    validation_status: str | None = Field(
        default=None,
        description="Overall verdict, normally PASS, WARNING or FAIL",
    )
    issues: list[Issue] | None = Field(
        default=None,
        description="Issues found, in the order reported",
    )
    confidence: float | None = Field(
        default=None,
        description="Model confidence, normally 0.0 to 1.0",
    )

    @field_validator("document_type", "validation_status", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str | None:
        return _as_text(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, value: Any) -> Any:
        # Unreadable confidences are dropped rather than rejected
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        if isinstance(value, (int, float)):
            return value
        return None

    @property
    def status(self) -> ValidationStatus | None:
        """The status as a known ValidationStatus, or None if unrecognized."""
        try:
            return ValidationStatus(self.validation_status)
        except ValueError:
            return None


class RawFallback(CamelModel):
    """Reply text that could not be read as a structured result."""

    raw_response: str = Field(..., description="Model reply after fence-stripping")
    parse_error: str | None = Field(
        default=None,
        description="Why the reply could not be parsed",
    )


# =============================================================================
# Relay Envelopes
# =============================================================================


class TokenUsage(CamelModel):
    """Token accounting reported by the inference API."""

    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)


class RelaySuccess(CamelModel):
    """Envelope for a relay call that reached the model."""

    success: Literal[True] = True
    result: dict[str, Any] = Field(
        ...,
        description="Parsed model reply, or rawResponse/parseError when unparseable",
    )
    usage: TokenUsage | None = None


class RelayFailure(CamelModel):
    """Envelope for a relay call that failed."""

    success: Literal[False] = False
    error: str = Field(..., description="Error message")
    details: str | None = Field(default=None, description="Diagnostic trace")


class OkResponse(BaseModel):
    """Body returned to pre-flight probes."""

    ok: bool = True


# =============================================================================
# Upload Coordination Models
# =============================================================================


class SelectedFile(CamelModel):
    """A file picked by the user for validation."""

    name: str = Field(..., description="Original filename")
    size: int = Field(..., ge=0, description="Size in bytes")
    content_type: str = Field(..., description="Declared media type")
    data: bytes = Field(default=b"", repr=False, description="Raw file bytes")

    @classmethod
    def from_bytes(
        cls, name: str, data: bytes, content_type: str = PDF_MEDIA_TYPE
    ) -> "SelectedFile":
        """Build a SelectedFile, deriving its size from the payload."""
        return cls(name=name, size=len(data), content_type=content_type, data=data)

    @property
    def is_pdf(self) -> bool:
        return self.content_type == PDF_MEDIA_TYPE


class FileOutcome(CamelModel):
    """Outcome of validating one file of a batch."""

    file_name: str
    status: Literal["success", "error"]
    result: dict[str, Any] | None = Field(
        default=None,
        description="Relay result (status == success)",
    )
    error: str | None = Field(
        default=None,
        description="Error message (status == error)",
    )

    @classmethod
    def succeeded(cls, file_name: str, result: dict[str, Any]) -> "FileOutcome":
        return cls(file_name=file_name, status="success", result=result)

    @classmethod
    def failed(cls, file_name: str, error: str) -> "FileOutcome":
        return cls(file_name=file_name, status="error", error=error)


class UploadState(CamelModel):
    """
    Observable state of the batch upload coordinator.

    Instances are immutable; transitions replace the whole value.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    uploading: bool = False
    error: str | None = None
    results: tuple[FileOutcome, ...] = ()
    current_index: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)


# =============================================================================
# Misc Responses
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")


class FeatureFlagsResponse(BaseModel):
    """Flag values evaluated for one user."""

    success: Literal[True] = True
    flags: dict[str, bool] = Field(default_factory=dict)
    user: str = Field(..., description="User key the flags were evaluated for")
