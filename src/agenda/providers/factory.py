from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Callable

from ..settings import AgendaConfig, ProviderSettings
from .base import CalendarProvider, UnknownProviderError, UnsupportedProviderError
from .morgen import MORGEN_PROVIDER_NAME, MorgenCalendarProvider

LOGGER = logging.getLogger(__name__)

ProviderBuilder = Callable[[ProviderSettings, tzinfo | None], CalendarProvider]


def _build_morgen_provider(settings: ProviderSettings, timezone: tzinfo | None) -> CalendarProvider:
    return MorgenCalendarProvider(settings, timezone=timezone)


PROVIDER_BUILDERS: dict[str, ProviderBuilder] = {
    MORGEN_PROVIDER_NAME: _build_morgen_provider,
}


def supported_providers() -> list[str]:
    return sorted(PROVIDER_BUILDERS)


def create_provider(
    name: str,
    config: AgendaConfig,
    *,
    timezone: tzinfo | None = None,
) -> CalendarProvider:
    provider_settings = config.providers.get(name)
    if provider_settings is None:
        raise UnknownProviderError(f"Provider {name} not found in configuration")

    builder = PROVIDER_BUILDERS.get(name)
    if builder is None:
        raise UnsupportedProviderError(
            f"Unsupported provider: {name} (supported: {', '.join(supported_providers())})"
        )

    LOGGER.debug("Creating calendar provider '%s' for %s", name, provider_settings.base_url)
    return builder(provider_settings, timezone)
