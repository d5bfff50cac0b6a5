"""
Result rendering.

Turns relay results into display models and HTML. A result is either a
structured ValidationResult or a RawFallback carrying the unparsed reply;
both are ordinary outcomes and are rendered, never raised.
"""

import base64
import json
import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, Field, ValidationError

from ..models import (
    FileOutcome,
    RawFallback,
    SelectedFile,
    Severity,
    UploadState,
    ValidationResult,
    ValidationStatus,
)

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_STATUS_LABEL = "COMPLETED"
NOT_AVAILABLE = "N/A"

STATUS_TONES = {
    ValidationStatus.PASS: "pass",
    ValidationStatus.WARNING: "warning",
    ValidationStatus.FAIL: "fail",
}

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")

_environment = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


# =============================================================================
# View Models
# =============================================================================


class IssueView(BaseModel):
    field: str
    severity: str
    message: str
    tone: Literal["error", "warning"]


class FieldRow(BaseModel):
    key: str
    label: str
    value: str
    is_json: bool = False


class ExportFile(BaseModel):
    filename: str
    href: str


class ResultView(BaseModel):
    """Everything a template needs to display one result."""

    kind: Literal["raw", "structured"]
    raw_text: str | None = None
    parse_error: str | None = None
    document_type: str | None = None
    status_label: str = DEFAULT_STATUS_LABEL
    status_tone: str = "neutral"
    confidence_percent: int | None = None
    issues: list[IssueView] = Field(default_factory=list)
    fields: list[FieldRow] = Field(default_factory=list)
    export: ExportFile | None = None


class OutcomeView(BaseModel):
    file_name: str
    status: str
    error: str | None = None
    result: ResultView | None = None


# =============================================================================
# Interpretation
# =============================================================================


def interpret_result(payload: dict[str, Any]) -> ValidationResult | RawFallback:
    """
    Classify a relay result.

    A payload with ``rawResponse`` and no ``validationStatus`` is the raw
    fallback. Anything else is read as a structured result, tolerating
    off-vocabulary scalars. Only a payload whose ``extractedFields`` or
    ``issues`` have the wrong shape is shown raw, with the validation
    message as its parse error.
    """
    if "rawResponse" in payload and not payload.get("validationStatus"):
        parse_error = payload.get("parseError")
        return RawFallback(
            raw_response=str(payload["rawResponse"]),
            parse_error=str(parse_error) if parse_error is not None else None,
        )

    try:
        return ValidationResult.model_validate(payload)
    except ValidationError as e:
        logger.warning("Result does not match the expected shape: %s", e)
        return RawFallback(
            raw_response=json.dumps(payload, indent=2, ensure_ascii=False, default=str),
            parse_error=f"Unexpected result shape: {e.error_count()} validation error(s)",
        )


def confidence_percent(confidence: float) -> int:
    """Confidence as a whole percentage, rounding halves up: 0.125 -> 13."""
    return math.floor(confidence * 100 + 0.5)


def humanize_key(key: str) -> str:
    """Split a camelCase key into words: ``hblNumber`` -> ``hbl Number``."""
    return _CAMEL_BOUNDARY.sub(r" \1", key).strip()


def format_value(value: Any) -> tuple[str, bool]:
    """
    Format an extracted value for display.

    Returns:
        The display text and whether it is formatted JSON.
    """
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False), True
    if value is None or value == "":
        return NOT_AVAILABLE, False
    if isinstance(value, bool):
        return json.dumps(value), False
    return str(value), False


def export_result(
    payload: dict[str, Any], now: datetime | None = None
) -> tuple[str, bytes]:
    """
    Serialize the full result object for download.

    Returns:
        ``(filename, content)`` with filename ``validation-result-<epoch ms>.json``.
    """
    moment = now or datetime.now(timezone.utc)
    filename = f"validation-result-{int(moment.timestamp() * 1000)}.json"
    content = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
    return filename, content


def build_result_view(payload: dict[str, Any], now: datetime | None = None) -> ResultView:
    """Build the display model for one relay result."""
    filename, content = export_result(payload, now)
    export = ExportFile(
        filename=filename,
        href="data:application/json;base64," + base64.b64encode(content).decode("ascii"),
    )

    result = interpret_result(payload)
    if isinstance(result, RawFallback):
        return ResultView(
            kind="raw",
            raw_text=result.raw_response,
            parse_error=result.parse_error,
            export=export,
        )

    status = result.validation_status
    confidence = result.confidence

    issues = [
        IssueView(
            field=issue.field or "",
            severity=issue.severity or "",
            message=issue.message or "",
            tone="error" if issue.severity == Severity.ERROR.value else "warning",
        )
        for issue in result.issues or []
    ]

    fields = []
    for key, value in (result.extracted_fields or {}).items():
        text, is_json = format_value(value)
        fields.append(FieldRow(key=key, label=humanize_key(key), value=text, is_json=is_json))

    return ResultView(
        kind="structured",
        document_type=result.document_type,
        status_label=status or DEFAULT_STATUS_LABEL,
        status_tone=STATUS_TONES.get(result.status, "neutral"),
        confidence_percent=confidence_percent(confidence) if confidence is not None else None,
        issues=issues,
        fields=fields,
        export=export,
    )


def build_outcome_view(outcome: FileOutcome) -> OutcomeView:
    return OutcomeView(
        file_name=outcome.file_name,
        status=outcome.status,
        error=outcome.error,
        result=build_result_view(outcome.result)
        if outcome.status == "success" and outcome.result is not None
        else None,
    )


# =============================================================================
# HTML
# =============================================================================


def render_result(payload: dict[str, Any]) -> str:
    """Render one relay result as an HTML fragment."""
    template = _environment.get_template("result.html")
    return template.render(view=build_result_view(payload))


def render_page(
    state: UploadState | None = None,
    files: Sequence[SelectedFile] = (),
) -> str:
    """Render the upload page with the current selection and outcomes."""
    state = state or UploadState()
    total_bytes = sum(f.size for f in files)
    template = _environment.get_template("index.html")
    return template.render(
        state=state,
        files=[
            {"name": f.name, "size_kb": f"{f.size / 1024:.0f}"}
            for f in files
        ],
        total_mb=f"{total_bytes / 1024 / 1024:.2f}",
        outcomes=[build_outcome_view(o) for o in state.results],
    )
