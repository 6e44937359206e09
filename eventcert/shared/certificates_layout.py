from __future__ import annotations

from typing import NamedTuple, Protocol

from reportlab.pdfbase.pdfmetrics import stringWidth

from .certificate_fields import TextField

REGULAR_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"

# Selection/hit box padding around a field's text, in points.
BOX_PADDING_X = 5.0
BOX_PADDING_BELOW = 5.0


class FontMetrics(Protocol):
    def width_of(self, text: str, size: float, weight: str) -> float:
        ...


def font_for_weight(weight: str) -> str:
    return BOLD_FONT if weight == "bold" else REGULAR_FONT


class ReportlabFontMetrics:
    """Width measurement for the embedded Helvetica family."""

    def width_of(self, text: str, size: float, weight: str) -> float:
        if not text:
            return 0.0
        return stringWidth(text, font_for_weight(weight), size)


class Anchor(NamedTuple):
    x: float
    y: float
    font_name: str
    text_width: float


class Box(NamedTuple):
    left: float
    top: float
    right: float
    bottom: float

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


def horizontal_start(field: TextField, text_width: float) -> float:
    if field.align == "center":
        return field.x - text_width / 2
    if field.align == "right":
        return field.x - text_width
    return field.x


def resolve_anchor(
    field: TextField,
    text: str,
    metrics: FontMetrics,
    page_height: float,
) -> Anchor:
    """Return the draw origin for ``text`` in PDF space (bottom-left origin).

    The stored ``field.y`` is the baseline measured down from the top of the
    page; it is flipped, never adjusted.
    """
    text_width = metrics.width_of(text, field.font_size, field.font_weight)
    return Anchor(
        x=horizontal_start(field, text_width),
        y=page_height - field.y,
        font_name=font_for_weight(field.font_weight),
        text_width=text_width,
    )


def field_bounding_box(field: TextField, text: str, metrics: FontMetrics) -> Box:
    """Selection box for ``field`` in editor space (top-left origin)."""
    text_width = metrics.width_of(text, field.font_size, field.font_weight)
    left = horizontal_start(field, text_width)
    return Box(
        left=left - BOX_PADDING_X,
        top=field.y - field.font_size,
        right=left + text_width + BOX_PADDING_X,
        bottom=field.y + BOX_PADDING_BELOW,
    )
