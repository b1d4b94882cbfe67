from __future__ import annotations

import re
from datetime import timedelta

DAYS_PER_YEAR = 365
DAYS_PER_MONTH = 30

_DURATION_PATTERN = re.compile(
    r"""
    ^P
    (?:(?P<years>\d+)Y)?
    (?:(?P<months>\d+)M)?
    (?:(?P<weeks>\d+)W)?
    (?:(?P<days>\d+)D)?
    (?:T
        (?:(?P<hours>\d+)H)?
        (?:(?P<minutes>\d+)M)?
        (?:(?P<seconds>\d+(?:[.,]\d+)?)S)?
    )?$
    """,
    re.VERBOSE,
)


def parse_iso_duration(text: str) -> timedelta:
    """Parse an ISO-8601 duration such as ``PT1H30M`` or ``P1D``.

    Calendar years and months have no fixed length, so they are counted as
    365 and 30 days respectively.
    """
    raw_value = (text or "").strip().upper()
    match = _DURATION_PATTERN.match(raw_value)
    if match is None or raw_value in ("P", "PT") or raw_value.endswith("T"):
        raise ValueError(f"Invalid ISO-8601 duration: {text!r}")

    parts = match.groupdict()
    days = (
        int(parts["years"] or 0) * DAYS_PER_YEAR
        + int(parts["months"] or 0) * DAYS_PER_MONTH
        + int(parts["weeks"] or 0) * 7
        + int(parts["days"] or 0)
    )
    seconds = float((parts["seconds"] or "0").replace(",", "."))
    try:
        return timedelta(
            days=days,
            hours=int(parts["hours"] or 0),
            minutes=int(parts["minutes"] or 0),
            seconds=seconds,
        )
    except OverflowError as exc:
        raise ValueError(f"ISO-8601 duration out of range: {text!r}") from exc
