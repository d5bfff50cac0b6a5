"""
Shared exceptions for the validation relay.
"""


class RelayError(Exception):
    """Raised when a relay operation fails."""

    pass


class RelayConfigurationError(RelayError):
    """Raised when the inference API credential is missing."""

    pass


class RelayInputError(RelayError):
    """Raised when the submitted form carries no document."""

    pass
