from __future__ import annotations

from datetime import date, datetime
from typing import NamedTuple

from .names import attendee_full_name

PLACEHOLDER_TOKENS: tuple[str, ...] = (
    "attendee_name",
    "event_name",
    "event_date",
    "event_venue",
)

DEFAULT_VENUE = "Philippines"


class RenderContext(NamedTuple):
    attendee_name: str | None = ""
    event_name: str | None = ""
    event_date: str | None = ""
    event_venue: str | None = ""


SAMPLE_CONTEXT = RenderContext(
    attendee_name="Juan Dela Cruz",
    event_name="Sample Conference 2024",
    event_date="October 16-18, 2024",
    event_venue="Manila, Philippines",
)


def substitute(value: str | None, context: RenderContext) -> str:
    """Replace every known ``{{token}}`` in ``value`` with its context value.

    Unknown ``{{...}}`` sequences pass through untouched and missing context
    values become empty strings.
    """
    text = value or ""
    for token in PLACEHOLDER_TOKENS:
        replacement = getattr(context, token) or ""
        text = text.replace("{{" + token + "}}", str(replacement))
    return text


def _as_date(value: date | datetime | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return date.fromisoformat(raw[:10])


def _month_day(value: date) -> str:
    return f"{value.strftime('%B')} {value.day}"


def format_event_date(
    start: date | datetime | str | None, end: date | datetime | str | None
) -> str:
    """Format an event's date range, e.g. ``October 16-18, 2024``."""
    start_date = _as_date(start)
    end_date = _as_date(end)
    if start_date is None and end_date is None:
        return ""
    start_date = start_date or end_date
    end_date = end_date or start_date

    if start_date == end_date:
        return f"{_month_day(start_date)}, {start_date.year}"
    if start_date.year != end_date.year:
        return (
            f"{_month_day(start_date)}, {start_date.year}-"
            f"{_month_day(end_date)}, {end_date.year}"
        )
    if start_date.month == end_date.month:
        return f"{_month_day(start_date)}-{end_date.day}, {end_date.year}"
    return f"{_month_day(start_date)}-{_month_day(end_date)}, {end_date.year}"


def event_venue(venue: str | None) -> str:
    cleaned = (venue or "").strip()
    return cleaned or DEFAULT_VENUE


def build_render_context(attendee, event) -> RenderContext:
    return RenderContext(
        attendee_name=attendee_full_name(attendee),
        event_name=(getattr(event, "name", None) or "").strip(),
        event_date=format_event_date(
            getattr(event, "start_date", None), getattr(event, "end_date", None)
        ),
        event_venue=event_venue(getattr(event, "venue", None)),
    )
