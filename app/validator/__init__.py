"""
Shipping Document Validator.

A FastAPI service that relays shipping documents (PDF) to Anthropic
Claude for field extraction and validation, plus a small upload UI.
"""

__version__ = "1.0.0"
