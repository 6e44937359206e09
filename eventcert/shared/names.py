"""Name utilities for certificates."""

from __future__ import annotations

from typing import Iterable, Optional


def combine_first_last(first: Optional[str], last: Optional[str]) -> str:
    """Join first/last names with a space, omitting blanks."""

    segments: Iterable[str] = (
        segment.strip()
        for segment in (first or "", last or "")
        if segment and segment.strip()
    )
    return " ".join(segments).strip()


def attendee_full_name(attendee) -> str:
    """Return the name printed on certificates.

    Only the given and family names are used; ``middle_name`` is ignored even
    when the record has one.
    """

    return combine_first_last(
        getattr(attendee, "personal_name", None),
        getattr(attendee, "last_name", None),
    )
