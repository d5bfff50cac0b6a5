"""
Router for the document validation relay.

Handles:
- POST: forward one PDF to the model and return the result envelope
- OPTIONS: pre-flight probes from other origins
- anything else: 405
"""

import logging
import traceback
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from ..models import PDF_MEDIA_TYPE, OkResponse, RelayFailure
from ..services.ai import DocumentRelay, RelayInputError, get_document_relay
from ..services.feature_flags import (
    DEFAULT_FLAG_USER_KEY,
    ENHANCED_VALIDATION_FLAG,
    FeatureFlagService,
    FlagUser,
    get_feature_flag_service,
)
from .cors import cors_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["validation"])

RELAY_PATH = "/validate-document"
# Path of the previous serverless deployment.
LEGACY_RELAY_PATH = "/.netlify/functions/validate-document"

ALLOWED_METHODS = "POST, OPTIONS"
NOT_ALLOWED_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE"]


def _respond(status_code: int, content) -> JSONResponse:
    return cors_json(status_code, content, ALLOWED_METHODS, exclude_none=True)


@router.post(RELAY_PATH)
@router.post(LEGACY_RELAY_PATH, include_in_schema=False)
async def validate_document(
    relay: Annotated[DocumentRelay, Depends(get_document_relay)],
    flags: Annotated[FeatureFlagService, Depends(get_feature_flag_service)],
    file: Annotated[UploadFile | None, File(description="PDF document to validate")] = None,
) -> JSONResponse:
    """
    Validate one shipping document.

    Returns ``{success, result, usage}``. A reply the model did not format as
    JSON still succeeds, with ``result`` holding ``rawResponse`` and
    ``parseError``.
    """
    try:
        relay.ensure_configured()

        if flags.enabled:
            enhanced = await flags.evaluate(
                ENHANCED_VALIDATION_FLAG, FlagUser(key=DEFAULT_FLAG_USER_KEY)
            )
            logger.info("Enhanced validation: %s", enhanced)

        if file is None:
            raise RelayInputError("No file provided")

        try:
            file_bytes = await file.read()
        finally:
            await file.close()

        envelope = await relay.validate(
            file_bytes,
            file.content_type or PDF_MEDIA_TYPE,
            file.filename or "document.pdf",
        )
        return _respond(
            status.HTTP_200_OK,
            envelope.model_dump(by_alias=True, mode="json"),
        )

    except RelayInputError as e:
        logger.info("Rejected request: %s", e)
        return _respond(status.HTTP_400_BAD_REQUEST, RelayFailure(error=str(e)))

    except Exception as e:
        logger.exception("Validation error")
        return _respond(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            RelayFailure(
                error=str(e) or "Internal server error",
                details=traceback.format_exc(),
            ),
        )


@router.options(RELAY_PATH)
@router.options(LEGACY_RELAY_PATH, include_in_schema=False)
async def validate_document_options() -> JSONResponse:
    """Answer pre-flight probes."""
    return _respond(status.HTTP_200_OK, OkResponse())


@router.api_route(RELAY_PATH, methods=NOT_ALLOWED_METHODS, include_in_schema=False)
@router.api_route(
    LEGACY_RELAY_PATH, methods=NOT_ALLOWED_METHODS, include_in_schema=False
)
async def validate_document_not_allowed() -> JSONResponse:
    """Reject every verb other than POST and OPTIONS."""
    return _respond(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        RelayFailure(error="Method not allowed"),
    )
