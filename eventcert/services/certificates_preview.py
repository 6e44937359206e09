import base64
import hashlib
import json
import time
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from typing import Iterable

from PIL import Image, ImageDraw, ImageFont

from ..shared.certificate_fields import PAGE_SIZE, TextField, hex_to_rgb
from ..shared.certificates import _decode_raster
from ..shared.certificates_layout import (
    BOLD_FONT,
    FontMetrics,
    field_bounding_box,
    font_for_weight,
)
from ..shared.placeholders import SAMPLE_CONTEXT, substitute

_CACHE_TTL_SECONDS = 45
_PREVIEW_SCALE = 1.0
_SELECTION_COLOR = (59, 130, 246)
_SELECTION_WIDTH = 2

_FONT_PATHS = {
    "Helvetica": "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    BOLD_FONT: "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
}
_DEFAULT_FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

# Pillow text anchors: horizontal position + baseline.
_ANCHORS = {"left": "ls", "center": "ms", "right": "rs"}


@dataclass(frozen=True)
class PreviewResult:
    image_base64: str
    warnings: tuple[str, ...]

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.image_base64}"


_preview_cache: dict[str, tuple[float, PreviewResult]] = {}


def _build_cache_key(
    *,
    image_bytes: bytes,
    fields: Iterable[TextField],
    preview_mode: bool,
    selected_id: str | None,
    page_size: tuple[float, float],
    scale: float,
) -> str:
    fields_fingerprint = json.dumps(
        [f.to_dict() for f in fields], sort_keys=True, separators=(",", ":")
    )
    raw = "|".join(
        [
            hashlib.sha256(image_bytes).hexdigest(),
            fields_fingerprint,
            "preview" if preview_mode else "edit",
            str(selected_id or ""),
            f"{page_size[0]:.3f}x{page_size[1]:.3f}",
            f"{scale:.3f}",
        ]
    )
    return hashlib.sha256(raw.encode()).hexdigest()


@lru_cache(maxsize=128)
def _font_at(pdf_font: str, size_px: int) -> tuple[ImageFont.ImageFont, str | None]:
    path = _FONT_PATHS.get(pdf_font) or _DEFAULT_FONT_PATH
    try:
        return ImageFont.truetype(path, size_px), None
    except OSError:
        pass
    if path != _DEFAULT_FONT_PATH:
        try:
            return (
                ImageFont.truetype(_DEFAULT_FONT_PATH, size_px),
                f"[preview-font-fallback] {pdf_font} unavailable; using default font",
            )
        except OSError:
            pass
    return (
        ImageFont.load_default(size=size_px),
        "[preview-font-fallback] using built-in bitmap font",
    )


def _load_font(pdf_font: str, size_px: int, warnings: list[str]) -> ImageFont.ImageFont:
    font, warning = _font_at(pdf_font, max(int(size_px), 1))
    if warning:
        warnings.append(warning)
    return font


class PreviewFontMetrics:
    """Width measurement with the fonts the preview actually draws.

    The PDF measures Helvetica; the preview has to measure its own glyphs so
    that hit boxes and selection outlines surround the visible text.
    """

    def __init__(self, scale: float = _PREVIEW_SCALE) -> None:
        self.scale = scale

    def width_of(self, text: str, size: float, weight: str) -> float:
        if not text:
            return 0.0
        font, _ = _font_at(font_for_weight(weight), max(int(round(size * self.scale)), 1))
        return float(font.getlength(text)) / self.scale


def _render_background(
    image_bytes: bytes, size_px: tuple[int, int], warnings: list[str]
) -> Image.Image:
    if image_bytes.startswith(b"%PDF-"):
        warnings.append("[preview-background] PDF backgrounds are not rasterized in preview")
        return Image.new("RGB", size_px, "white")
    background = _decode_raster(image_bytes)
    canvas = Image.new("RGB", size_px, "white")
    stretched = background.resize(size_px)
    if stretched.mode == "RGBA":
        canvas.paste(stretched, (0, 0), stretched)
    else:
        canvas.paste(stretched, (0, 0))
    return canvas


def render_preview(
    image_bytes: bytes,
    fields: Iterable[TextField],
    *,
    preview_mode: bool,
    selected_id: str | None = None,
    page_size: tuple[float, float] = PAGE_SIZE,
    metrics: FontMetrics | None = None,
    scale: float = _PREVIEW_SCALE,
) -> PreviewResult:
    """Rasterize the editor canvas.

    In edit mode raw placeholders are shown and the selected field is
    outlined; preview mode substitutes sample values and hides the outline.
    Text is anchored at ``field.x`` the same way the PDF anchors it (start,
    middle or end of the line, on the baseline).
    """
    fields = tuple(fields)
    cache_key = _build_cache_key(
        image_bytes=image_bytes,
        fields=fields,
        preview_mode=preview_mode,
        selected_id=selected_id,
        page_size=page_size,
        scale=scale,
    )
    now = time.time()
    cached = _preview_cache.get(cache_key)
    if cached and now - cached[0] < _CACHE_TTL_SECONDS:
        return cached[1]

    metrics = metrics or PreviewFontMetrics(scale)
    warnings: list[str] = []
    width_px = max(1, int(round(page_size[0] * scale)))
    height_px = max(1, int(round(page_size[1] * scale)))
    image = _render_background(image_bytes, (width_px, height_px), warnings)
    draw = ImageDraw.Draw(image)

    for field in fields:
        text = substitute(field.value, SAMPLE_CONTEXT) if preview_mode else field.value
        font = _load_font(
            font_for_weight(field.font_weight),
            int(round(field.font_size * scale)),
            warnings,
        )
        fill = tuple(int(round(channel * 255)) for channel in hex_to_rgb(field.color))
        if text:
            draw.text(
                (field.x * scale, field.y * scale),
                text,
                font=font,
                fill=fill,
                anchor=_ANCHORS.get(field.align, "ls"),
            )
        if field.id == selected_id and not preview_mode:
            box = field_bounding_box(field, text, metrics)
            draw.rectangle(
                [box.left * scale, box.top * scale, box.right * scale, box.bottom * scale],
                outline=_SELECTION_COLOR,
                width=_SELECTION_WIDTH,
            )

    out = BytesIO()
    image.save(out, format="PNG")
    result = PreviewResult(
        image_base64=base64.b64encode(out.getvalue()).decode("ascii"),
        warnings=tuple(dict.fromkeys(warnings)),
    )
    _preview_cache[cache_key] = (now, result)
    return result
