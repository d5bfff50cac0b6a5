"""
FastAPI application for shipping document validation.

Provides endpoints for:
- Relaying a PDF to Claude for field extraction and validation
- Looking up feature flags
- A browser upload page driving batch validation
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import get_settings
from .models import HealthResponse
from .routers import feature_flags, ui, validation

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Shipping Document Validator...")
    settings = get_settings()
    if not settings.anthropic_api_key:
        logger.warning(
            "ANTHROPIC_API_KEY is not set. Validation requests will fail until it is configured."
        )
    if not settings.launchdarkly_sdk_key:
        logger.info("LaunchDarkly not configured, feature flags use their defaults")
    yield
    logger.info("Shutting down Shipping Document Validator...")


# Create FastAPI application
app = FastAPI(
    title="Shipping Document Validator API",
    description="AI-powered extraction and validation of shipping documents",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(validation.router)
app.include_router(feature_flags.router)
app.include_router(ui.router)
