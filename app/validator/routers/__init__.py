"""
Routers package for FastAPI endpoints.

Organized by domain:
- validation: Document validation relay
- feature_flags: Feature flag lookup
- ui: Browser upload page
"""

from . import feature_flags, ui, validation

__all__ = ["feature_flags", "ui", "validation"]
