"""
Router exposing feature flag values for the calling user.
"""

import logging
import traceback
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..models import FeatureFlagsResponse, OkResponse, RelayFailure
from ..services.feature_flags import (
    ENHANCED_VALIDATION_FLAG,
    NEW_FEATURE_FLAG,
    FeatureFlagError,
    FeatureFlagService,
    FlagUser,
    get_feature_flag_service,
)
from .cors import cors_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feature-flags", tags=["feature-flags"])

ALLOWED_METHODS = "GET, POST, OPTIONS"
ANONYMOUS_USER_KEY = "anonymous-user"


@router.api_route("", methods=["GET", "POST"])
async def get_feature_flags(
    request: Request,
    flags: Annotated[FeatureFlagService, Depends(get_feature_flag_service)],
) -> JSONResponse:
    """
    Evaluate the known flags for the user named in the request headers.

    The user key comes from ``x-user-id`` and the email from ``x-user-email``.
    """
    if not flags.enabled:
        return cors_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            RelayFailure(error="LAUNCHDARKLY_CLIENT_SIDE_ID not configured"),
            ALLOWED_METHODS,
            exclude_none=True,
        )

    user = FlagUser(
        key=request.headers.get("x-user-id") or ANONYMOUS_USER_KEY,
        email=request.headers.get("x-user-email"),
    )

    try:
        values = await flags.fetch([NEW_FEATURE_FLAG, ENHANCED_VALIDATION_FLAG], user)
    except FeatureFlagError as e:
        logger.exception("Feature flag error")
        return cors_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            RelayFailure(error=str(e), details=traceback.format_exc()),
            ALLOWED_METHODS,
        )

    return cors_json(
        status.HTTP_200_OK,
        FeatureFlagsResponse(flags=values, user=user.key),
        ALLOWED_METHODS,
    )


@router.options("")
async def feature_flags_options() -> JSONResponse:
    """Answer pre-flight probes."""
    return cors_json(status.HTTP_200_OK, OkResponse(), ALLOWED_METHODS)
