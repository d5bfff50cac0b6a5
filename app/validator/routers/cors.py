"""
CORS-aware JSON responses for endpoints called from other origins.
"""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel


def cors_headers(methods: str) -> dict[str, str]:
    """Headers allowing any origin to call an endpoint with ``methods``."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Methods": methods,
    }


def cors_json(
    status_code: int,
    content: BaseModel | dict[str, Any],
    methods: str,
    exclude_none: bool = False,
) -> JSONResponse:
    """Build a JSONResponse carrying the permissive CORS headers."""
    if isinstance(content, BaseModel):
        content = content.model_dump(by_alias=True, exclude_none=exclude_none, mode="json")
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=cors_headers(methods),
    )
