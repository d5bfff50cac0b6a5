"""
Services package for the document validator.

Contains:
- ai: Anthropic relay for document validation
- coordinator: Sequential batch submission to the relay
- feature_flags: LaunchDarkly flag lookups
- renderer: Result display models and HTML
"""

from .ai import DocumentRelay
from .coordinator import BatchUploadCoordinator
from .feature_flags import FeatureFlagService

__all__ = ["DocumentRelay", "BatchUploadCoordinator", "FeatureFlagService"]
