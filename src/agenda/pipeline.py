from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timezone
from typing import Iterable

from .domain.models import CalendarEvent
from .providers.base import CalendarProvider

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Agenda:
    """Deduplicated, start-ordered events for a single day."""

    target_date: date
    events: tuple[CalendarEvent, ...]

    @property
    def is_empty(self) -> bool:
        return not self.events

    def __len__(self) -> int:
        return len(self.events)


def _dedup_key(event: CalendarEvent) -> tuple[str, str]:
    return event.title, event.start_time.astimezone(timezone.utc).isoformat()


def deduplicate_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    seen: set[tuple[str, str]] = set()
    unique: list[CalendarEvent] = []
    for event in events:
        key = _dedup_key(event)
        if key in seen:
            LOGGER.debug("Dropping duplicate event %r at %s", event.title, key[1])
            continue
        seen.add(key)
        unique.append(event)
    return unique


def sort_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted(events, key=lambda event: event.start_time)


def prepare_agenda(events: Iterable[CalendarEvent], target_date: date) -> Agenda:
    prepared = sort_events(deduplicate_events(events))
    return Agenda(target_date=target_date, events=tuple(prepared))


def fetch_agenda(provider: CalendarProvider, target_date: date) -> Agenda:
    events = provider.get_events_for_date(target_date)
    LOGGER.info("Provider '%s' returned %d events for %s", provider.name, len(events), target_date)
    return prepare_agenda(events, target_date)
