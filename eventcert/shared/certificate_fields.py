from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

from .errors import FieldValidationError

# Canonical page, in points. Field coordinates use the same units with a
# top-left origin.
PAGE_WIDTH = 842.0
PAGE_HEIGHT = 595.0
PAGE_SIZE: tuple[float, float] = (PAGE_WIDTH, PAGE_HEIGHT)

TEMPLATE_KINDS: tuple[str, ...] = ("participation", "awardee", "attendance")
DEFAULT_TEMPLATE_KIND = "participation"

TEMPLATE_KIND_LABELS: dict[str, str] = {
    "participation": "Participation",
    "awardee": "Award",
    "attendance": "Attendance",
}

FONT_WEIGHTS: tuple[str, ...] = ("normal", "bold")
ALIGNMENTS: tuple[str, ...] = ("left", "center", "right")

_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


def normalize_kind(value: str | None) -> str:
    kind = (value or DEFAULT_TEMPLATE_KIND).strip().lower()
    if kind not in TEMPLATE_KINDS:
        raise ValueError(f"Unsupported template type: {value!r}")
    return kind


def is_valid_color(value: str | None) -> bool:
    return bool(value) and _HEX_COLOR_RE.match(value) is not None


def hex_to_rgb(value: str | None) -> tuple[float, float, float]:
    """Return ``(r, g, b)`` in 0..1; malformed colors render black."""
    match = _HEX_COLOR_RE.match(value or "")
    if not match:
        return (0.0, 0.0, 0.0)
    return tuple(int(part, 16) / 255 for part in match.groups())  # type: ignore[return-value]


def _number(raw: Any, key: str) -> float:
    if isinstance(raw, bool):
        raise FieldValidationError(f"{key} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise FieldValidationError(f"{key} must be a number") from None
    if not math.isfinite(value):
        raise FieldValidationError(f"{key} must be finite")
    return value


@dataclass(frozen=True)
class TextField:
    id: str
    label: str
    value: str
    x: float
    y: float
    font_size: float
    font_weight: str = "normal"
    color: str = "#000000"
    align: str = "left"

    @property
    def is_bold(self) -> bool:
        return self.font_weight == "bold"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TextField":
        if not isinstance(data, Mapping):
            raise FieldValidationError("field must be an object")
        field_id = str(data.get("id") or "").strip()
        if not field_id:
            raise FieldValidationError("field id is required")
        font_size = _number(data.get("fontSize"), "fontSize")
        if font_size <= 0:
            raise FieldValidationError(f"fontSize must be positive (field {field_id})")
        weight = data.get("fontWeight") or "normal"
        if weight not in FONT_WEIGHTS:
            raise FieldValidationError(
                f"fontWeight must be one of {FONT_WEIGHTS} (field {field_id})"
            )
        align = data.get("align") or "left"
        if align not in ALIGNMENTS:
            raise FieldValidationError(
                f"align must be one of {ALIGNMENTS} (field {field_id})"
            )
        color = str(data.get("color") or "#000000").strip()
        if not is_valid_color(color):
            raise FieldValidationError(f"color must be a 6-digit hex value (field {field_id})")
        value = data.get("value")
        return cls(
            id=field_id,
            label=str(data.get("label") or ""),
            value="" if value is None else str(value),
            x=_number(data.get("x"), "x"),
            y=_number(data.get("y"), "y"),
            font_size=font_size,
            font_weight=weight,
            color=color,
            align=align,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "value": self.value,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size,
            "fontWeight": self.font_weight,
            "color": self.color,
            "align": self.align,
        }


def parse_fields(raw: Iterable[Mapping[str, Any]] | None) -> tuple[TextField, ...]:
    """Validate a wire-format field list, preserving order."""
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes, Mapping)):
        raise FieldValidationError("fields must be a list")
    fields: list[TextField] = []
    seen: set[str] = set()
    for item in raw:
        field = TextField.from_dict(item)
        if field.id in seen:
            raise FieldValidationError(f"duplicate field id {field.id!r}")
        seen.add(field.id)
        fields.append(field)
    return tuple(fields)


def _lenient_field(item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    cleaned = dict(item)
    if not is_valid_color(str(cleaned.get("color") or "#000000").strip()):
        cleaned["color"] = "#000000"
    if cleaned.get("fontWeight") not in FONT_WEIGHTS:
        cleaned["fontWeight"] = "normal"
    if cleaned.get("align") not in ALIGNMENTS:
        cleaned["align"] = "left"
    return cleaned


def parse_stored_fields(raw: Iterable[Mapping[str, Any]] | None) -> tuple[TextField, ...]:
    """Build fields from a saved template, tolerating legacy styling.

    Malformed colours become black and unknown weights or alignments fall
    back to ``normal``/``left``. Fields that cannot be placed at all (no id,
    non-numeric position or size) still raise :class:`FieldValidationError`.
    """
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes, Mapping)):
        raise FieldValidationError("fields must be a list")
    return parse_fields([_lenient_field(item) for item in raw])


def fields_to_dicts(fields: Iterable[TextField]) -> list[dict[str, Any]]:
    return [field.to_dict() for field in fields]


def _default(
    field_id: str,
    label: str,
    value: str,
    y: float,
    font_size: float,
    *,
    bold: bool = False,
    color: str = "#34495E",
) -> TextField:
    return TextField(
        id=field_id,
        label=label,
        value=value,
        x=PAGE_WIDTH / 2,
        y=y,
        font_size=font_size,
        font_weight="bold" if bold else "normal",
        color=color,
        align="center",
    )


DEFAULT_FIELDS: dict[str, tuple[TextField, ...]] = {
    "participation": (
        _default("name", "Attendee Name", "{{attendee_name}}", 335, 36, bold=True, color="#2C3E50"),
        _default("event", "Event Name", "for having attended the {{event_name}}", 275, 14),
        _default("date", "Event Date", "conducted on {{event_date}} at {{event_venue}}", 250, 14),
    ),
    "awardee": (
        _default("name", "Awardee Name", "{{attendee_name}}", 335, 40, bold=True, color="#C0392B"),
        _default("award", "Award Title", "Outstanding Achievement Award", 275, 18, bold=True, color="#8E44AD"),
        _default("event", "Event Name", "at {{event_name}}", 245, 14),
    ),
    "attendance": (
        _default("name", "Attendee Name", "{{attendee_name}}", 335, 36, bold=True, color="#2C3E50"),
        _default("event", "Event Name", "attended {{event_name}}", 275, 14),
        _default("date", "Event Date", "on {{event_date}} at {{event_venue}}", 250, 14),
    ),
}


def rescale_fields(
    fields: Iterable[TextField],
    from_size: tuple[float, float],
    to_size: tuple[float, float],
) -> tuple[TextField, ...]:
    """Move fields proportionally between page sizes.

    ``x`` follows the width ratio and ``y`` the height ratio; font sizes are
    left unchanged.
    """
    sx = to_size[0] / from_size[0]
    sy = to_size[1] / from_size[1]
    return tuple(replace(f, x=f.x * sx, y=f.y * sy) for f in fields)


def default_fields(
    kind: str, page_size: tuple[float, float] = PAGE_SIZE
) -> tuple[TextField, ...]:
    base = DEFAULT_FIELDS[normalize_kind(kind)]
    if tuple(page_size) == PAGE_SIZE:
        return base
    return rescale_fields(base, PAGE_SIZE, page_size)


def new_field(field_id: str, page_size: tuple[float, float] = PAGE_SIZE) -> TextField:
    width, height = page_size
    return TextField(
        id=field_id,
        label="New Field",
        value="Sample Text",
        x=width / 2,
        y=height / 2,
        font_size=16,
        font_weight="normal",
        color="#000000",
        align="center",
    )
