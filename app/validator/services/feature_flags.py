"""
Feature flag lookups backed by LaunchDarkly.

Flags are optional: without an SDK key every lookup returns its default.
Each lookup opens its own client, waits for it to initialize, queries and
closes it again; no client is kept between calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from ldclient.client import LDClient
from ldclient.config import Config
from ldclient.context import Context

from ..config import get_settings

logger = logging.getLogger(__name__)

ENHANCED_VALIDATION_FLAG = "enableEnhancedValidation"
NEW_FEATURE_FLAG = "enableMyNewFeature"

DEFAULT_FLAG_USER_KEY = "validator-user"

ClientFactory = Callable[[str, float], Any]


class FeatureFlagError(Exception):
    """Raised when the flag service cannot be queried."""

    pass


@dataclass(frozen=True)
class FlagUser:
    """The user flags are evaluated for."""

    key: str
    email: str | None = None

    def to_context(self) -> Context:
        builder = Context.builder(self.key).kind("user")
        if self.email:
            builder.set("email", self.email)
        return builder.build()


def _default_client_factory(sdk_key: str, start_wait: float) -> LDClient:
    return LDClient(config=Config(sdk_key), start_wait=start_wait)


class FeatureFlagService:
    """Evaluates boolean flags for a user."""

    def __init__(
        self,
        sdk_key: str | None,
        client_factory: ClientFactory | None = None,
        start_wait: float = 5.0,
    ):
        """
        Initialize the flag service.

        Args:
            sdk_key: LaunchDarkly key. None disables all lookups.
            client_factory: Builds an LDClient-compatible client from
                ``(sdk_key, start_wait)``.
            start_wait: Seconds to wait for client initialization.
        """
        self.sdk_key = sdk_key
        self.start_wait = start_wait
        self._client_factory = client_factory or _default_client_factory

    @property
    def enabled(self) -> bool:
        return bool(self.sdk_key)

    async def fetch(
        self,
        flag_keys: Iterable[str],
        user: FlagUser,
        default: bool = False,
    ) -> dict[str, bool]:
        """
        Query the flag service.

        Raises:
            FeatureFlagError: If the service is not configured or the query fails.
        """
        keys = list(flag_keys)
        if not self.enabled:
            raise FeatureFlagError("LAUNCHDARKLY_CLIENT_SIDE_ID not configured")
        try:
            # The SDK blocks while initializing; keep it off the event loop.
            return await asyncio.to_thread(self._query, keys, user, default)
        except Exception as e:
            raise FeatureFlagError(str(e) or type(e).__name__) from e

    async def evaluate_many(
        self,
        flag_keys: Iterable[str],
        user: FlagUser,
        default: bool = False,
    ) -> dict[str, bool]:
        """Like fetch(), but falls back to ``default`` instead of raising."""
        keys = list(flag_keys)
        if not self.enabled:
            return {key: default for key in keys}
        try:
            return await self.fetch(keys, user, default)
        except FeatureFlagError as e:
            logger.warning("LaunchDarkly not available, using default settings: %s", e)
            return {key: default for key in keys}

    async def evaluate(
        self,
        flag_key: str,
        user: FlagUser,
        default: bool = False,
    ) -> bool:
        """Evaluate a single flag, never raising."""
        values = await self.evaluate_many([flag_key], user, default)
        return values[flag_key]

    def _query(self, flag_keys: list[str], user: FlagUser, default: bool) -> dict[str, bool]:
        client = self._client_factory(self.sdk_key, self.start_wait)
        try:
            if not client.is_initialized():
                logger.warning(
                    "LaunchDarkly client not initialized after %.1fs, flags may be defaults",
                    self.start_wait,
                )
            context = user.to_context()
            return {key: bool(client.variation(key, context, default)) for key in flag_keys}
        finally:
            client.close()


def get_feature_flag_service() -> FeatureFlagService:
    """Build a flag service from the current settings (FastAPI dependency)."""
    return FeatureFlagService(get_settings().launchdarkly_sdk_key)
