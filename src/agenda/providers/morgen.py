from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..domain.models import CalendarEvent
from ..settings import API_KEY_PLACEHOLDER, ProviderSettings
from .base import MissingCredentialError, ProviderRequestError
from .durations import parse_iso_duration

LOGGER = logging.getLogger(__name__)

MORGEN_PROVIDER_NAME = "morgen"
USER_AGENT = "agenda/0.1"
START_TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M")


@dataclass(slots=True)
class _MorgenCalendar:
    id: str
    name: str
    account_id: str
    can_read: bool


def _to_display_zone(value: datetime, timezone_value: tzinfo | None) -> datetime:
    if timezone_value is None:
        return value.astimezone()
    return value.astimezone(timezone_value)


def _local_midnight(target_date: date, timezone_value: tzinfo | None) -> datetime:
    if timezone_value is None:
        return datetime.combine(target_date, time.min).astimezone()
    return datetime.combine(target_date, time.min, tzinfo=timezone_value)


def _parse_start_time(value: Any, timezone_value: ZoneInfo) -> datetime:
    if not isinstance(value, str):
        raise ValueError(f"Start time must be a string, got {type(value).__name__}")
    for fmt in START_TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=timezone_value)
        except ValueError:
            continue
    raise ValueError(f"Invalid start time: {value!r}")


def _attendee_names(participants: Any) -> tuple[str, ...]:
    if not isinstance(participants, dict):
        return ()
    names: list[str] = []
    for participant in participants.values():
        if not isinstance(participant, dict):
            continue
        label = participant.get("name") or participant.get("email")
        if isinstance(label, str) and label.strip():
            names.append(label.strip())
    return tuple(names)


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _parse_calendars(payload: dict[str, Any]) -> list[_MorgenCalendar]:
    data = payload.get("data")
    raw_calendars = data.get("calendars") if isinstance(data, dict) else None
    if not isinstance(raw_calendars, list):
        raise ProviderRequestError("Unexpected Morgen calendars response shape")

    calendars: list[_MorgenCalendar] = []
    for raw_calendar in raw_calendars:
        if not isinstance(raw_calendar, dict):
            continue
        calendar_id = raw_calendar.get("id")
        account_id = raw_calendar.get("accountId")
        if not calendar_id or not account_id:
            LOGGER.debug("Skipping Morgen calendar without id or accountId: %r", raw_calendar)
            continue
        rights = raw_calendar.get("myRights")
        can_read = isinstance(rights, dict) and bool(rights.get("mayReadItems"))
        calendars.append(
            _MorgenCalendar(
                id=str(calendar_id),
                name=str(raw_calendar.get("name") or ""),
                account_id=str(account_id),
                can_read=can_read,
            )
        )
    return calendars


def _parse_raw_events(payload: dict[str, Any]) -> list[dict[str, Any]]:
    data = payload.get("data")
    raw_events = data.get("events") if isinstance(data, dict) else None
    if not isinstance(raw_events, list):
        raise ProviderRequestError("Unexpected Morgen events response shape")
    return [raw_event for raw_event in raw_events if isinstance(raw_event, dict)]


def _normalize_event(raw_event: dict[str, Any], timezone_value: tzinfo | None) -> CalendarEvent | None:
    event_id = str(raw_event.get("id") or "")
    timezone_name = raw_event.get("timeZone")
    try:
        if not isinstance(timezone_name, str) or not timezone_name.strip():
            raise ValueError("missing time zone")
        event_timezone = ZoneInfo(timezone_name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("Skipping event %s: unknown time zone %r", event_id, timezone_name)
        return None

    try:
        start_time = _parse_start_time(raw_event.get("start"), event_timezone)
    except ValueError as exc:
        LOGGER.warning("Skipping event %s: %s", event_id, exc)
        return None

    raw_duration = raw_event.get("duration")
    try:
        duration = parse_iso_duration(str(raw_duration or ""))
    except ValueError:
        # Keep the event with a zero-length duration rather than dropping it.
        LOGGER.warning("Event %s has invalid duration %r; using zero", event_id, raw_duration)
        duration = timedelta(0)

    try:
        display_start = _to_display_zone(start_time, timezone_value)
    except (OverflowError, ValueError, OSError) as exc:
        LOGGER.warning("Skipping event %s: start time out of range: %s", event_id, exc)
        return None

    try:
        display_end = _to_display_zone(start_time + duration, timezone_value)
    except (OverflowError, ValueError, OSError):
        LOGGER.warning("Event %s end time out of range for duration %r; using zero", event_id, raw_duration)
        display_end = display_start

    return CalendarEvent(
        id=event_id,
        title=str(raw_event.get("title") or ""),
        start_time=display_start,
        end_time=display_end,
        description=_optional_text(raw_event.get("description")),
        location=_optional_text(raw_event.get("location")),
        attendees=_attendee_names(raw_event.get("participants")),
    )


class MorgenCalendarProvider:
    """Calendar provider backed by the Morgen REST API."""

    def __init__(self, settings: ProviderSettings, *, timezone: tzinfo | None = None) -> None:
        self._settings = settings
        self._timezone = timezone

    @property
    def name(self) -> str:
        return MORGEN_PROVIDER_NAME

    def get_events_for_date(self, target_date: date) -> list[CalendarEvent]:
        api_key = self._resolve_api_key()
        headers = self._build_headers(api_key)

        calendars = _parse_calendars(self._fetch_json("/calendars/list", headers=headers))
        calendars_by_account = self._group_calendars(calendars)
        if not calendars_by_account:
            LOGGER.info("No readable Morgen calendars after filtering")
            return []

        day_start = _local_midnight(target_date, self._timezone)
        day_end = _local_midnight(target_date + timedelta(days=1), self._timezone)

        raw_events: list[dict[str, Any]] = []
        for account_id, calendar_ids in calendars_by_account.items():
            params = {
                "start": day_start.isoformat(timespec="seconds"),
                "end": day_end.isoformat(timespec="seconds"),
                "accountId": account_id,
                "calendarIds": ",".join(calendar_ids),
            }
            payload = self._fetch_json("/events/list", headers=headers, params=params)
            account_events = _parse_raw_events(payload)
            LOGGER.debug("Account %s returned %d events", account_id, len(account_events))
            raw_events.extend(account_events)

        events: list[CalendarEvent] = []
        for raw_event in raw_events:
            event = _normalize_event(raw_event, self._timezone)
            if event is not None:
                events.append(event)
        return events

    def _resolve_api_key(self) -> str:
        env_name = self._settings.env_api_key
        api_key = os.environ.get(env_name, "").strip()
        if not api_key:
            raise MissingCredentialError(f"API key not found in environment variable {env_name}")
        return api_key

    def _build_headers(self, api_key: str) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        for key, value in self._settings.headers.items():
            headers[key] = value.replace(API_KEY_PLACEHOLDER, api_key)
        return headers

    def _group_calendars(self, calendars: list[_MorgenCalendar]) -> dict[str, list[str]]:
        ignored = set(self._settings.calendars_to_ignore)
        grouped: dict[str, list[str]] = {}
        for calendar in calendars:
            if not calendar.can_read:
                LOGGER.debug("Skipping unreadable calendar %r", calendar.name)
                continue
            if calendar.name in ignored:
                LOGGER.debug("Skipping ignored calendar %r", calendar.name)
                continue
            grouped.setdefault(calendar.account_id, []).append(calendar.id)
        return grouped

    def _fetch_json(
        self,
        path: str,
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._settings.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"

        request = Request(url, headers=headers, method="GET")
        try:
            with urlopen(request, timeout=self._settings.timeout_seconds) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise ProviderRequestError(
                f"Morgen request to {path} failed with status {exc.code}: {body}",
                status=exc.code,
                body=body,
            ) from exc
        except (URLError, TimeoutError, OSError, HTTPException) as exc:
            raise ProviderRequestError(f"Morgen request to {path} failed: {exc}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProviderRequestError(f"Morgen response from {path} was not valid JSON") from exc

        if not isinstance(payload, dict):
            raise ProviderRequestError(f"Unexpected Morgen response shape from {path}")
        return payload
