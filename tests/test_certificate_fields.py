import pytest

from eventcert.shared.certificate_fields import (
    DEFAULT_FIELDS,
    PAGE_SIZE,
    TextField,
    default_fields,
    fields_to_dicts,
    hex_to_rgb,
    is_valid_color,
    new_field,
    normalize_kind,
    parse_fields,
    rescale_fields,
)
from eventcert.shared.errors import FieldValidationError


def _wire(**overrides):
    data = {
        "id": "name",
        "label": "Attendee Name",
        "value": "{{attendee_name}}",
        "x": 421,
        "y": 335,
        "fontSize": 36,
        "fontWeight": "bold",
        "color": "#2C3E50",
        "align": "center",
    }
    data.update(overrides)
    return data


def test_from_dict_reads_wire_keys():
    field = TextField.from_dict(_wire())
    assert field.font_size == 36
    assert field.is_bold
    assert field.align == "center"
    assert field.to_dict() == {**_wire(), "x": 421.0, "y": 335.0, "fontSize": 36.0}


def test_from_dict_defaults_optional_keys():
    field = TextField.from_dict({"id": "f", "x": 1, "y": 2, "fontSize": 10})
    assert field.value == ""
    assert field.font_weight == "normal"
    assert field.color == "#000000"
    assert field.align == "left"


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": ""},
        {"fontSize": 0},
        {"fontSize": "big"},
        {"x": True},
        {"y": float("nan")},
        {"fontWeight": "heavy"},
        {"align": "justify"},
        {"color": "red"},
    ],
)
def test_from_dict_rejects_bad_values(overrides):
    with pytest.raises(FieldValidationError):
        TextField.from_dict(_wire(**overrides))


def test_parse_fields_preserves_order_and_rejects_duplicates():
    fields = parse_fields([_wire(id="b"), _wire(id="a")])
    assert [f.id for f in fields] == ["b", "a"]
    with pytest.raises(FieldValidationError, match="duplicate"):
        parse_fields([_wire(), _wire()])
    with pytest.raises(FieldValidationError):
        parse_fields({"id": "name"})
    assert parse_fields(None) == ()


def test_hex_colours_must_be_ascii():
    assert is_valid_color("#A1b2C3")
    assert not is_valid_color("#\u0661\u0662\u0663\u0664\u0665\u0666")
    assert hex_to_rgb("\uff11\uff11\uff11\uff11\uff11\uff11") == (0.0, 0.0, 0.0)
    with pytest.raises(FieldValidationError):
        TextField.from_dict(_wire(color="#\u0661\u0662\u0663\u0664\u0665\u0666"))


def test_hex_to_rgb():
    assert hex_to_rgb("#ff0000") == (1.0, 0.0, 0.0)
    assert hex_to_rgb("00FF00") == (0.0, 1.0, 0.0)
    assert hex_to_rgb("#fff") == (0.0, 0.0, 0.0)
    assert hex_to_rgb(None) == (0.0, 0.0, 0.0)


def test_normalize_kind():
    assert normalize_kind(None) == "participation"
    assert normalize_kind(" AWARDEE ") == "awardee"
    with pytest.raises(ValueError):
        normalize_kind("award")


def test_default_fields_per_kind():
    for kind, fields in DEFAULT_FIELDS.items():
        assert len(fields) == 3
        assert all(f.x == PAGE_SIZE[0] / 2 for f in fields)
        assert default_fields(kind) == fields
    assert default_fields("awardee")[1].value == "Outstanding Achievement Award"


def test_default_fields_rescale_positions_not_font_sizes():
    scaled = default_fields("participation", (1684.0, 1190.0))
    name = scaled[0]
    assert name.x == pytest.approx(842.0)
    assert name.y == pytest.approx(670.0)
    assert name.font_size == 36


def test_rescale_fields_identity():
    fields = DEFAULT_FIELDS["attendance"]
    assert rescale_fields(fields, PAGE_SIZE, PAGE_SIZE) == fields


def test_new_field_is_centered():
    field = new_field("f1")
    assert (field.x, field.y) == (421.0, 297.5)
    assert field.value == "Sample Text"
    assert field.font_size == 16
    assert field.align == "center"
    assert fields_to_dicts([field])[0]["fontWeight"] == "normal"
