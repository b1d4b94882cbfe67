from __future__ import annotations

from datetime import date
from typing import Protocol

from ..domain.models import CalendarEvent


class CalendarProviderError(RuntimeError):
    """Raised when calendar events cannot be loaded from a provider."""


class MissingCredentialError(CalendarProviderError):
    """Raised when the provider's API key environment variable is unset or empty."""


class UnknownProviderError(CalendarProviderError):
    """Raised when a provider name has no entry in the configuration."""


class UnsupportedProviderError(CalendarProviderError):
    """Raised when a configured provider has no implementation."""


class ProviderRequestError(CalendarProviderError):
    """Raised when a provider request fails at the transport or HTTP level."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class CalendarProvider(Protocol):
    @property
    def name(self) -> str:
        """Stable provider identifier used for config lookup and diagnostics."""

    def get_events_for_date(self, target_date: date) -> list[CalendarEvent]:
        """Return normalized events for the requested local day."""
