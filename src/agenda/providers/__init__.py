from .base import (
    CalendarProvider,
    CalendarProviderError,
    MissingCredentialError,
    ProviderRequestError,
    UnknownProviderError,
    UnsupportedProviderError,
)
from .durations import parse_iso_duration
from .factory import create_provider, supported_providers
from .morgen import MorgenCalendarProvider

__all__ = [
    "CalendarProvider",
    "CalendarProviderError",
    "MissingCredentialError",
    "MorgenCalendarProvider",
    "ProviderRequestError",
    "UnknownProviderError",
    "UnsupportedProviderError",
    "create_provider",
    "parse_iso_duration",
    "supported_providers",
]
