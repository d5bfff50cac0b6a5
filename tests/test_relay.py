"""Tests for the document relay: fence-stripping, reply parsing and API calls."""

import base64

import pytest

from app.validator.config import Settings
from app.validator.services.ai import (
    PARSE_ERROR_MESSAGE,
    VALIDATION_SYSTEM_PROMPT,
    VALIDATION_USER_INSTRUCTION,
    DocumentRelay,
    RelayConfig,
    RelayConfigurationError,
    parse_model_reply,
    strip_markdown_fence,
)


class TestStripMarkdownFence:
    """Tests for removing markdown fences around the reply."""

    def test_strips_json_fence(self):
        """Test that a ```json fence is removed."""
        assert strip_markdown_fence('```json\n{"a":1}\n```') == '{"a":1}'

    def test_strips_plain_fence(self):
        """Test that an untagged fence is removed."""
        assert strip_markdown_fence('```\n{"a":1}\n```') == '{"a":1}'

    def test_unfenced_text_unchanged(self):
        """Test that text without a fence is only trimmed."""
        assert strip_markdown_fence('  {"a":1}\n') == '{"a":1}'

    def test_surrounding_whitespace_trimmed_before_stripping(self):
        """Test that leading/trailing whitespace does not hide the fence."""
        assert strip_markdown_fence('\n\n```json\n{"a":1}\n```\n  ') == '{"a":1}'

    def test_fence_in_the_middle_is_kept(self):
        """Test that only a fence at the very start is considered."""
        text = 'Here you go:\n```json\n{"a":1}\n```'
        assert strip_markdown_fence(text) == text


class TestParseModelReply:
    """Tests for turning model text into a result object."""

    def test_fenced_json(self):
        """Test that fenced JSON parses to its object."""
        assert parse_model_reply('```json\n{"a":1}\n```') == {"a": 1}

    def test_plain_json(self):
        """Test that unfenced JSON parses unchanged."""
        assert parse_model_reply('{"a":1}') == {"a": 1}

    def test_malformed_text_returns_raw_fallback(self):
        """Test that non-JSON text becomes rawResponse/parseError."""
        result = parse_model_reply("not json")
        assert result == {"rawResponse": "not json", "parseError": PARSE_ERROR_MESSAGE}
        assert result["parseError"]

    def test_raw_fallback_holds_stripped_text(self):
        """Test that the raw fallback carries the text after fence-stripping."""
        result = parse_model_reply("```json\n{broken\n```")
        assert result["rawResponse"] == "{broken"

    def test_embedded_fence_falls_back_to_raw(self):
        """Test that a fence in the middle of prose is not parsed."""
        result = parse_model_reply('Result:\n```json\n{"a":1}\n```')
        assert "rawResponse" in result

    def test_non_object_json_returns_raw_fallback(self):
        """Test that a JSON array or scalar is not accepted as a result."""
        assert parse_model_reply("[1, 2]")["rawResponse"] == "[1, 2]"
        assert parse_model_reply("42")["parseError"] == PARSE_ERROR_MESSAGE

    def test_empty_reply_returns_raw_fallback(self):
        """Test that an empty reply does not raise."""
        assert parse_model_reply("") == {
            "rawResponse": "",
            "parseError": PARSE_ERROR_MESSAGE,
        }


class TestRelayConfig:
    """Tests for building relay configuration."""

    def test_defaults(self):
        """Test default model and token budget."""
        config = RelayConfig(api_key="key")
        assert config.model == "claude-3-5-sonnet-20241022"
        assert config.max_tokens == 4096

    def test_from_settings(self):
        """Test that settings values are carried over."""
        settings = Settings(
            _env_file=None,
            anthropic_api_key="sk-test",
            anthropic_model="claude-test",
            max_output_tokens=1024,
        )
        config = RelayConfig.from_settings(settings)
        assert config == RelayConfig(api_key="sk-test", model="claude-test", max_tokens=1024)


class TestDocumentRelay:
    """Tests for DocumentRelay against a fake inference client."""

    def test_build_request_shape(self):
        """Test the Messages API request for one document."""
        relay = DocumentRelay(RelayConfig(api_key="key"))
        request = relay.build_request(b"%PDF-1.4 data", "application/pdf")

        assert request["model"] == "claude-3-5-sonnet-20241022"
        assert request["max_tokens"] == 4096
        assert request["system"] == VALIDATION_SYSTEM_PROMPT
        assert len(request["messages"]) == 1

        message = request["messages"][0]
        assert message["role"] == "user"
        text_block, document_block = message["content"]
        assert text_block == {"type": "text", "text": VALIDATION_USER_INSTRUCTION}
        assert document_block["type"] == "document"
        assert document_block["source"]["type"] == "base64"
        assert document_block["source"]["media_type"] == "application/pdf"
        assert base64.b64decode(document_block["source"]["data"]) == b"%PDF-1.4 data"

    def test_system_prompt_lists_schema(self):
        """Test that the system prompt names every field group."""
        for phrase in (
            "Shipper",
            "Consignee",
            "HBL#",
            "Invoice#",
            "PO#",
            "Origin Port",
            "Destination Port",
            "Carrier",
            "Quantity",
            "Weight",
            "Volume",
            "Total Value",
            "Currency",
            "Payment Terms",
            "Issue Date",
            "Shipment Date",
            "Delivery Date",
            "NO MARKDOWN",
        ):
            assert phrase in VALIDATION_SYSTEM_PROMPT

    def test_missing_api_key_raises(self):
        """Test that an unconfigured relay refuses to run."""
        relay = DocumentRelay(RelayConfig(api_key=None))
        with pytest.raises(RelayConfigurationError) as exc_info:
            relay.ensure_configured()
        assert "ANTHROPIC_API_KEY not configured" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_validate_missing_api_key_makes_no_call(self, fake_anthropic):
        """Test that no client is built without a credential."""
        fake = fake_anthropic(reply="{}")
        relay = DocumentRelay(RelayConfig(api_key=""), client_factory=fake)
        with pytest.raises(RelayConfigurationError):
            await relay.validate(b"%PDF", "application/pdf")
        assert fake.clients == []

    @pytest.mark.asyncio
    async def test_validate_returns_parsed_result_and_usage(self, fake_anthropic, pass_reply):
        """Test a successful validation round trip."""
        fake = fake_anthropic(reply=pass_reply)
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        envelope = await relay.validate(b"%PDF-1.4", "application/pdf", "hbl.pdf")

        assert envelope.success is True
        assert envelope.result["validationStatus"] == "PASS"
        assert envelope.result["confidence"] == 0.92
        assert envelope.usage.input_tokens == 1200
        assert envelope.usage.output_tokens == 340
        assert fake.api_keys == ["sk-test"]
        assert len(fake.requests) == 1

    @pytest.mark.asyncio
    async def test_validate_uses_new_client_per_call(self, fake_anthropic):
        """Test that every call gets its own client, closed afterwards."""
        fake = fake_anthropic(reply='{"a": 1}')
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        await relay.validate(b"one", "application/pdf")
        await relay.validate(b"two", "application/pdf")

        assert len(fake.clients) == 2
        assert fake.clients[0] is not fake.clients[1]
        assert all(c.closed for c in fake.clients)

    @pytest.mark.asyncio
    async def test_validate_closes_client_on_error(self, fake_anthropic):
        """Test that the client is closed when the API call fails."""
        fake = fake_anthropic(error=RuntimeError("upstream down"))
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        with pytest.raises(RuntimeError):
            await relay.validate(b"%PDF", "application/pdf")
        assert fake.clients[0].closed is True

    @pytest.mark.asyncio
    async def test_validate_unparseable_reply_still_succeeds(self, fake_anthropic):
        """Test that prose replies become a successful raw fallback."""
        fake = fake_anthropic(reply="I could not read this document.")
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        envelope = await relay.validate(b"%PDF", "application/pdf")

        assert envelope.success is True
        assert envelope.result["rawResponse"] == "I could not read this document."
        assert envelope.result["parseError"] == PARSE_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_validate_non_text_reply(self, fake_anthropic):
        """Test that a reply without a text block is treated as empty text."""
        fake = fake_anthropic(reply=None)
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        envelope = await relay.validate(b"%PDF", "application/pdf")

        assert envelope.result["rawResponse"] == ""

    @pytest.mark.asyncio
    async def test_validate_forwards_declared_media_type(self, fake_anthropic):
        """Test that the declared media type is passed through unchanged."""
        fake = fake_anthropic(reply="{}")
        relay = DocumentRelay(RelayConfig(api_key="sk-test"), client_factory=fake)

        await relay.validate(b"%PDF", "application/x-pdf")

        source = fake.requests[0]["messages"][0]["content"][1]["source"]
        assert source["media_type"] == "application/x-pdf"
