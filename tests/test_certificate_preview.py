import base64
from io import BytesIO

import pytest
from PIL import Image, ImageChops

from conftest import make_png
from eventcert.services import certificates_preview
from eventcert.services.certificates_preview import PreviewFontMetrics, render_preview
from eventcert.shared.certificate_fields import DEFAULT_FIELDS, TextField
from eventcert.shared.certificates_layout import field_bounding_box


@pytest.fixture(autouse=True)
def _clear_cache():
    certificates_preview._preview_cache.clear()
    yield
    certificates_preview._preview_cache.clear()


def _decode(result):
    return Image.open(BytesIO(base64.b64decode(result.image_base64)))


@pytest.mark.smoke
def test_preview_returns_page_sized_png(png_bytes):
    result = render_preview(png_bytes, DEFAULT_FIELDS["participation"], preview_mode=False)
    assert result.data_url.startswith("data:image/png;base64,")
    assert _decode(result).size == (842, 595)


def test_preview_mode_substitutes_sample_values():
    background = make_png(color=(255, 255, 255))
    fields = DEFAULT_FIELDS["participation"]
    edit = render_preview(background, fields, preview_mode=False)
    preview = render_preview(background, fields, preview_mode=True)
    assert edit.image_base64 != preview.image_base64


def test_selection_outline_only_in_edit_mode():
    background = make_png(color=(255, 255, 255))
    fields = DEFAULT_FIELDS["attendance"]
    plain = render_preview(background, fields, preview_mode=False)
    selected = render_preview(background, fields, preview_mode=False, selected_id="name")
    assert plain.image_base64 != selected.image_base64
    assert (59, 130, 246) in {px for _, px in _decode(selected).convert("RGB").getcolors(1 << 20)}

    plain_preview = render_preview(background, fields, preview_mode=True)
    selected_preview = render_preview(
        background, fields, preview_mode=True, selected_id="name"
    )
    assert plain_preview.image_base64 == selected_preview.image_base64


def test_preview_results_are_cached(png_bytes):
    fields = DEFAULT_FIELDS["awardee"]
    first = render_preview(png_bytes, fields, preview_mode=True)
    assert render_preview(png_bytes, fields, preview_mode=True) is first
    assert len(certificates_preview._preview_cache) == 1


def test_pdf_background_warns():
    result = render_preview(b"%PDF-1.4 ...", (), preview_mode=False)
    assert any("[preview-background]" in w for w in result.warnings)
    assert _decode(result).size == (842, 595)


def _ink_bbox(result):
    img = _decode(result).convert("RGB")
    return ImageChops.difference(img, Image.new("RGB", img.size, "white")).getbbox()


def _wide_field(align, x):
    return TextField(
        id="wide",
        label="Wide",
        value="W" * 20,
        x=x,
        y=300,
        font_size=36,
        font_weight="bold",
        color="#000000",
        align=align,
    )


@pytest.mark.parametrize(
    "align,x,edge",
    [("center", 421.0, "middle"), ("left", 100.0, "left"), ("right", 742.0, "right")],
)
def test_text_is_anchored_at_field_x(align, x, edge):
    background = make_png(color=(255, 255, 255))
    result = render_preview(background, [_wide_field(align, x)], preview_mode=True)
    left, _, right, _ = _ink_bbox(result)
    assert 0 < left and right < 842
    measured = {"middle": (left + right) / 2, "left": left, "right": right}[edge]
    assert measured == pytest.approx(x, abs=4)


def test_selection_box_surrounds_drawn_text():
    background = make_png(color=(255, 255, 255))
    field = _wide_field("center", 421.0)
    left, top, right, bottom = _ink_bbox(
        render_preview(background, [field], preview_mode=True)
    )
    box = field_bounding_box(field, field.value, PreviewFontMetrics())
    assert box.left <= left and right <= box.right
    assert box.top <= top and bottom <= box.bottom


def test_numeric_selected_id_is_accepted(png_bytes):
    result = render_preview(png_bytes, DEFAULT_FIELDS["participation"], preview_mode=False, selected_id=7)
    assert result.data_url.startswith("data:image/png;base64,")
