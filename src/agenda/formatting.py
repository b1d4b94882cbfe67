from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from jinja2 import StrictUndefined, Template, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

from .domain.models import CalendarEvent
from .pipeline import Agenda

LOGGER = logging.getLogger(__name__)


class TemplateError(RuntimeError):
    """Raised when an event or heading template cannot be used."""


class TemplateParseError(TemplateError):
    """Raised when a template has invalid syntax."""


class TemplateRenderError(TemplateError):
    """Raised when a template fails to render for a given event."""


def format_duration(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() / 60)
    sign = "-" if total_minutes < 0 else ""
    hours, minutes = divmod(abs(total_minutes), 60)
    if hours and minutes:
        return f"{sign}{hours}h {minutes}m"
    if hours:
        return f"{sign}{hours}h"
    return f"{sign}{minutes}m"


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value:%Y}"


def _build_environment() -> SandboxedEnvironment:
    return SandboxedEnvironment(
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=False,
    )


class EventFormatter:
    """Renders events and the agenda heading with Jinja2 templates.

    Templates are compiled once at construction, so a syntax error surfaces
    before any event is fetched or rendered.
    """

    def __init__(self, time_format: str, template: str, *, heading_template: str = "") -> None:
        self._time_format = time_format
        self._environment = _build_environment()
        self._template = self._compile(template, label="event template")
        self._heading_template = (
            self._compile(heading_template, label="heading template") if heading_template.strip() else None
        )

    def _compile(self, source: str, *, label: str) -> Template:
        try:
            return self._environment.from_string(source)
        except TemplateSyntaxError as exc:
            raise TemplateParseError(f"Failed to parse {label}: {exc}") from exc

    def event_context(self, event: CalendarEvent) -> dict[str, Any]:
        context = event.model_dump()
        context.update(
            start_time_formatted=event.start_time.strftime(self._time_format),
            end_time_formatted=event.end_time.strftime(self._time_format),
            duration=format_duration(event.duration),
            duration_minutes=int(event.duration.total_seconds() / 60),
        )
        return context

    def format_event(self, event: CalendarEvent) -> str:
        try:
            return self._template.render(self.event_context(event))
        except Exception as exc:  # templates can raise arbitrary errors from filters and arithmetic
            raise TemplateRenderError(f"Failed to render event {event.title!r}: {exc}") from exc

    def format_heading(self, target_date: date) -> str | None:
        if self._heading_template is None:
            return None
        try:
            return self._heading_template.render(date=target_date, date_formatted=format_long_date(target_date))
        except Exception as exc:
            raise TemplateRenderError(f"Failed to render heading: {exc}") from exc


def render_agenda(agenda: Agenda, formatter: EventFormatter) -> list[str]:
    lines: list[str] = []
    try:
        heading = formatter.format_heading(agenda.target_date)
    except TemplateRenderError as exc:
        LOGGER.warning("Skipping heading: %s", exc)
        heading = None
    if heading is not None:
        lines.extend([heading, ""])

    for event in agenda.events:
        try:
            lines.append(formatter.format_event(event))
        except TemplateRenderError as exc:
            LOGGER.warning("Skipping event %r: %s", event.title, exc)
    return lines
