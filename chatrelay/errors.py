"""Exception hierarchy for chatrelay."""

from typing import Optional


class ChatRelayError(Exception):
    """Base exception for all chatrelay errors."""

    def __init__(self, message: str, *, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ChatRelayError):
    """A provider was requested that has no credentials, or settings are invalid."""


class UpstreamError(ChatRelayError):
    """The upstream provider call failed.

    Not retried; the caller decides how to present the failed turn.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider
        self.status_code = status_code


class AlternateEndpointError(UpstreamError):
    """The alternate endpoint answered with a non-2xx status."""
