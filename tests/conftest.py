"""Pytest configuration and fixtures."""

from types import SimpleNamespace
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient

from app.validator.config import Settings, get_settings
from app.validator.main import app
from app.validator.services.ai import DocumentRelay, RelayConfig, get_document_relay
from app.validator.services.feature_flags import (
    FeatureFlagService,
    get_feature_flag_service,
)


# =============================================================================
# Fake Anthropic client
# =============================================================================


class FakeMessages:
    """Stands in for ``AsyncAnthropic().messages``."""

    def __init__(self, owner: "FakeAnthropic"):
        self.owner = owner

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.owner.requests.append(kwargs)
        if self.owner.error is not None:
            raise self.owner.error
        content = []
        if self.owner.reply is not None:
            content.append(SimpleNamespace(type="text", text=self.owner.reply))
        input_tokens, output_tokens = self.owner.usage
        return SimpleNamespace(
            content=content,
            usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        )


class FakeClient:
    def __init__(self, owner: "FakeAnthropic"):
        self.messages = FakeMessages(owner)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeAnthropic:
    """Client factory returning fake clients that answer with a canned reply."""

    def __init__(
        self,
        reply: str | None = "{}",
        error: Exception | None = None,
        usage: tuple[int, int] = (1200, 340),
    ):
        self.reply = reply
        self.error = error
        self.usage = usage
        self.requests: list[dict[str, Any]] = []
        self.clients: list[FakeClient] = []
        self.api_keys: list[str] = []

    def __call__(self, api_key: str) -> FakeClient:
        self.api_keys.append(api_key)
        client = FakeClient(self)
        self.clients.append(client)
        return client


# =============================================================================
# Fake LaunchDarkly client
# =============================================================================


class FakeLDClient:
    def __init__(self, values: dict[str, bool], initialized: bool = True, error: Exception | None = None):
        self.values = values
        self.initialized = initialized
        self.error = error
        self.closed = False
        self.contexts: list[Any] = []

    def is_initialized(self) -> bool:
        return self.initialized

    def variation(self, key: str, context: Any, default: bool) -> bool:
        if self.error is not None:
            raise self.error
        self.contexts.append(context)
        return self.values.get(key, default)

    def close(self) -> None:
        self.closed = True


class FakeLDFactory:
    def __init__(self, values: dict[str, bool] | None = None, **client_kwargs: Any):
        self.values = values or {}
        self.client_kwargs = client_kwargs
        self.clients: list[FakeLDClient] = []
        self.calls: list[tuple[str, float]] = []

    def __call__(self, sdk_key: str, start_wait: float) -> FakeLDClient:
        self.calls.append((sdk_key, start_wait))
        client = FakeLDClient(self.values, **self.client_kwargs)
        self.clients.append(client)
        return client


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_anthropic() -> Callable[..., FakeAnthropic]:
    """Build a fake Anthropic client factory with a canned reply."""
    return FakeAnthropic


@pytest.fixture
def fake_launchdarkly() -> Callable[..., FakeLDFactory]:
    """Build a fake LaunchDarkly client factory."""
    return FakeLDFactory


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.

    Feature flags are disabled and settings ignore the process environment
    so the tests never reach external services.
    """
    test_settings = Settings(
        _env_file=None,
        anthropic_api_key=None,
        launchdarkly_sdk_key=None,
        relay_url=None,
    )
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_document_relay] = lambda: DocumentRelay(
        RelayConfig(api_key=None)
    )
    app.dependency_overrides[get_feature_flag_service] = lambda: FeatureFlagService(None)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def use_relay(client: TestClient) -> Callable[..., FakeAnthropic]:
    """
    Route relay calls to a fake Anthropic client.

    Returns a function taking the reply text (and optionally an error or
    API key) that installs the override and returns the fake factory.
    """

    def install(
        reply: str | None = "{}",
        error: Exception | None = None,
        api_key: str | None = "test-key",
    ) -> FakeAnthropic:
        fake = FakeAnthropic(reply=reply, error=error)
        app.dependency_overrides[get_document_relay] = lambda: DocumentRelay(
            RelayConfig(api_key=api_key),
            client_factory=fake,
        )
        return fake

    return install


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    return b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>
endobj
trailer
<< /Size 4 /Root 1 0 R >>
%%EOF"""


@pytest.fixture
def pass_reply() -> str:
    """A well-formed model reply for a passing HBL."""
    return """{
  "documentType": "HBL",
  "extractedFields": {
    "shipper": {"name": "Acme Exports Ltd", "address": "12 Harbour Rd, Shenzhen", "contact": "+86 755 1234"},
    "consignee": {"name": "Northwind Imports", "address": "400 Dock St, Oakland", "contact": null},
    "hblNumber": "HBL-2024-0042",
    "invoiceNumber": "INV-7781",
    "totalValue": "12500.00",
    "currency": "USD"
  },
  "validationStatus": "PASS",
  "issues": [],
  "confidence": 0.92
}"""
