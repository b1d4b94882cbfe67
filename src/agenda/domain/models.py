from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CalendarEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    title: str = ""
    start_time: datetime
    end_time: datetime
    description: str | None = None
    location: str | None = None
    attendees: tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("calendar event timestamps must be timezone-aware")
        return value

    @field_validator("description", "location")
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        return text or None

    @property
    def duration(self) -> timedelta:
        # May be zero or negative for malformed provider data.
        return self.end_time - self.start_time
