"""
Router for the browser upload UI.

Handles:
- The upload page
- Batch validation of the uploaded files through the relay endpoint
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

import httpx
from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import HTMLResponse

from ..config import Settings, get_settings
from ..models import SelectedFile
from ..services.coordinator import BatchUploadCoordinator
from ..services.renderer import render_page
from .validation import RELAY_PATH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ui"])

IN_PROCESS_BASE_URL = "http://validator.internal"


@asynccontextmanager
async def relay_client(
    request: Request, settings: Settings
) -> AsyncIterator[tuple[httpx.AsyncClient, str]]:
    """
    Open an HTTP client for the relay and yield it with the relay URL.

    Without a configured RELAY_URL the relay of this very application is
    called in-process.
    """
    timeout = httpx.Timeout(settings.relay_timeout_seconds)
    if settings.relay_url:
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client, settings.relay_url
        return

    transport = httpx.ASGITransport(app=request.app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport,
        base_url=IN_PROCESS_BASE_URL,
        timeout=timeout,
    ) as client:
        yield client, RELAY_PATH


async def _read_selection(files: list[UploadFile]) -> list[SelectedFile]:
    selected = []
    for upload in files:
        try:
            data = await upload.read()
        finally:
            await upload.close()
        selected.append(
            SelectedFile.from_bytes(
                upload.filename or "document",
                data,
                upload.content_type or "",
            )
        )
    return selected


@router.get("/", response_class=HTMLResponse)
async def index() -> str:
    """Render the empty upload page."""
    return render_page()


@router.post("/ui/validate", response_class=HTMLResponse)
async def validate_uploads(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    files: Annotated[list[UploadFile] | None, File(description="PDF documents")] = None,
) -> str:
    """
    Validate the uploaded files one by one and render the outcomes.

    Non-PDF files are dropped from the selection; a selection without any
    PDF is rejected with an error message.
    """
    selection = await _read_selection(files or [])

    async with relay_client(request, settings) as (client, relay_url):
        coordinator = BatchUploadCoordinator(
            relay_url=relay_url,
            client=client,
            timeout=settings.relay_timeout_seconds,
        )
        if not coordinator.select_files(selection):
            return render_page(coordinator.state)

        logger.info("Validating %d uploaded file(s)", len(coordinator.files))
        state = await coordinator.submit_batch()

    return render_page(state, coordinator.files)
