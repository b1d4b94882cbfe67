"""Shared test fixtures for agenda tests.

Provides:
- Provider settings and a default config pointing at a fake Morgen host
- A fake ``urlopen`` that serves Morgen calendar/event payloads
- Event factories for pipeline and formatter tests
"""

import io
import json
from datetime import datetime, timedelta
from urllib.error import HTTPError
from urllib.parse import parse_qs, urlparse
from zoneinfo import ZoneInfo

import pytest

from agenda.domain.models import CalendarEvent
from agenda.settings import ProviderSettings, default_config

UTC = ZoneInfo("UTC")
API_KEY_ENV = "AGENDA_TEST_API_KEY"


# ─────────────────────────────────────────────────────────────────────────────
# Fake Morgen API
# ─────────────────────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, payload):
        self._body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


class FakeMorgenApi:
    """Callable stand-in for ``urlopen`` that records every request."""

    def __init__(self, calendars=None, events_by_account=None, failing_accounts=(), status=500):
        self.calendars = calendars or []
        self.events_by_account = events_by_account or {}
        self.failing_accounts = set(failing_accounts)
        self.status = status
        self.requests = []
        self.timeouts = []

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        self.timeouts.append(timeout)
        parsed = urlparse(request.full_url)

        if parsed.path.endswith("/calendars/list"):
            return FakeResponse({"data": {"calendars": self.calendars}})

        if parsed.path.endswith("/events/list"):
            account_id = parse_qs(parsed.query)["accountId"][0]
            if account_id in self.failing_accounts:
                raise HTTPError(
                    request.full_url,
                    self.status,
                    "Internal Server Error",
                    hdrs=None,
                    fp=io.BytesIO(b"upstream exploded"),
                )
            return FakeResponse({"data": {"events": self.events_by_account.get(account_id, [])}})

        raise AssertionError(f"Unexpected request: {request.full_url}")

    def event_requests(self):
        return [request for request in self.requests if "/events/list" in request.full_url]


def make_calendar(calendar_id, account_id, name=None, can_read=True):
    return {
        "id": calendar_id,
        "accountId": account_id,
        "name": name or calendar_id,
        "myRights": {"mayReadItems": can_read},
        "color": "#123456",
    }


def make_raw_event(event_id, title, start="2024-01-01T09:00:00", duration="PT30M", time_zone="UTC", **extra):
    raw_event = {
        "id": event_id,
        "title": title,
        "start": start,
        "duration": duration,
        "timeZone": time_zone,
    }
    raw_event.update(extra)
    return raw_event


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def provider_settings() -> ProviderSettings:
    return ProviderSettings(
        base_url="https://morgen.test/v3",
        headers={
            "Authorization": "ApiKey {API_KEY}",
            "Content-Type": "application/json",
        },
        env_api_key=API_KEY_ENV,
    )


@pytest.fixture
def api_key(monkeypatch) -> str:
    monkeypatch.setenv(API_KEY_ENV, "secret-key")
    return "secret-key"


@pytest.fixture
def fake_api(monkeypatch):
    """Install a FakeMorgenApi in place of urlopen; tests fill in its data."""
    api = FakeMorgenApi()
    monkeypatch.setattr("agenda.providers.morgen.urlopen", api)
    return api


@pytest.fixture
def config_with_test_provider(provider_settings):
    config = default_config()
    return config.model_copy(update={"providers": {"morgen": provider_settings}})


@pytest.fixture
def make_event():
    def _make_event(title="Standup", start=None, minutes=30, event_id=None, **extra):
        start = start or datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        return CalendarEvent(
            id=event_id or f"{title}-{start.isoformat()}",
            title=title,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            **extra,
        )

    return _make_event
