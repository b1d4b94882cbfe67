"""Tests for agenda/pipeline.py

Post-processing rules:
- duplicates share (title, start instant); first occurrence wins
- output is stably sorted by start time
- an empty result is an explicit empty Agenda, not an error
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from agenda.pipeline import Agenda, deduplicate_events, fetch_agenda, prepare_agenda, sort_events

UTC = ZoneInfo("UTC")
TARGET_DATE = date(2024, 1, 1)


def _at(hour, minute=0, tz=UTC):
    return datetime(2024, 1, 1, hour, minute, tzinfo=tz)


class FakeProvider:
    name = "fake"

    def __init__(self, events):
        self.events = events
        self.requested = []

    def get_events_for_date(self, target_date):
        self.requested.append(target_date)
        return list(self.events)


class TestDeduplicate:
    """Tests for duplicate removal."""

    def test_standup_with_different_descriptions_kept_once(self, make_event):
        first = make_event("Standup", description="Calendar A", event_id="a")
        second = make_event("Standup", description="Calendar B", event_id="b")

        result = deduplicate_events([first, second])

        assert result == [first]

    def test_same_instant_in_different_zones_is_duplicate(self, make_event):
        utc_event = make_event("Sync", start=_at(14), event_id="a")
        ny_event = make_event("Sync", start=_at(14).astimezone(ZoneInfo("America/New_York")), event_id="b")

        assert deduplicate_events([utc_event, ny_event]) == [utc_event]

    def test_different_titles_or_times_are_kept(self, make_event):
        events = [
            make_event("Standup", start=_at(9)),
            make_event("Standup", start=_at(9, 1)),
            make_event("standup", start=_at(9)),
        ]

        assert deduplicate_events(events) == events

    def test_sub_second_precision_distinguishes(self, make_event):
        base = _at(9)
        events = [make_event("Tick", start=base), make_event("Tick", start=base + timedelta(microseconds=1))]

        assert len(deduplicate_events(events)) == 2

    def test_idempotent(self, make_event):
        events = [make_event("A", start=_at(10)), make_event("A", start=_at(10)), make_event("B", start=_at(9))]

        once = prepare_agenda(events, TARGET_DATE)
        twice = prepare_agenda(once.events, TARGET_DATE)

        assert once == twice


class TestSort:
    """Tests for ordering."""

    def test_sorted_ascending(self, make_event):
        events = [make_event("C", start=_at(15)), make_event("A", start=_at(8)), make_event("B", start=_at(11))]

        result = sort_events(events)

        assert [event.title for event in result] == ["A", "B", "C"]
        assert all(a.start_time <= b.start_time for a, b in zip(result, result[1:]))

    def test_ties_keep_input_order(self, make_event):
        events = [make_event("Second", start=_at(9)), make_event("First", start=_at(9)), make_event("Early", start=_at(7))]

        assert [event.title for event in sort_events(events)] == ["Early", "Second", "First"]

    def test_compares_instants_across_zones(self, make_event):
        berlin = make_event("Berlin", start=datetime(2024, 1, 1, 10, 0, tzinfo=ZoneInfo("Europe/Berlin")))
        utc = make_event("UTC", start=datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc))

        assert [event.title for event in sort_events([utc, berlin])] == ["Berlin", "UTC"]


class TestAgenda:
    """Tests for the prepared agenda value."""

    def test_empty_agenda_is_explicit(self):
        agenda = prepare_agenda([], TARGET_DATE)

        assert isinstance(agenda, Agenda)
        assert agenda.is_empty
        assert len(agenda) == 0
        assert agenda.target_date == TARGET_DATE

    def test_fetch_agenda_dedups_and_sorts(self, make_event):
        provider = FakeProvider(
            [
                make_event("Late", start=_at(16)),
                make_event("Standup", start=_at(9)),
                make_event("Standup", start=_at(9)),
            ]
        )

        agenda = fetch_agenda(provider, TARGET_DATE)

        assert provider.requested == [TARGET_DATE]
        assert [event.title for event in agenda.events] == ["Standup", "Late"]
        assert not agenda.is_empty
