import itertools

import pytest

from conftest import StaticFetcher
from eventcert.services.template_editor import (
    DRAGGING,
    FIELD_SELECTED,
    IDLE,
    EditorSession,
    Viewport,
)
from eventcert.shared.certificate_fields import DEFAULT_FIELDS
from eventcert.shared.certificate_templates import DEFAULT_IMAGE_URL
from eventcert.shared.errors import EditorStateError, FieldValidationError

PAGE = Viewport(842, 595)


@pytest.fixture
def session(store, metrics):
    ids = (f"f{n}" for n in itertools.count(1))
    return EditorSession(store, 1, metrics=metrics, id_factory=lambda: next(ids)).open()


def test_open_without_stored_templates(session):
    assert session.state == IDLE
    assert session.kind == "participation"
    for kind, draft in session.drafts.items():
        assert draft.image_url is None
        assert draft.fields == DEFAULT_FIELDS[kind]


def test_open_seeds_from_store(store, metrics):
    store.add_template(
        1,
        "awardee",
        "asset://award.png",
        [{"id": "custom", "value": "Hi", "x": 1, "y": 2, "fontSize": 9}],
    )
    store.add_template(1, "attendance", "asset://att.png", [{"id": ""}])
    session = EditorSession(store, 1, metrics=metrics).open()
    session.switch_kind("awardee")
    assert [f.id for f in session.fields] == ["custom"]
    assert session.draft.image_url == "asset://award.png"
    session.switch_kind("attendance")
    assert session.fields == DEFAULT_FIELDS["attendance"]
    assert session.draft.image_url == "asset://att.png"


def test_open_survives_store_errors(store, metrics, caplog):
    store.fail_reads = True
    session = EditorSession(store, 1, metrics=metrics).open()
    assert session.fields == DEFAULT_FIELDS["participation"]
    assert "[editor] load failed" in caplog.text


def test_add_update_delete(session):
    field = session.add_field()
    assert field.id == "f1"
    assert (field.x, field.y) == (421.0, 297.5)
    assert session.selected_id == "f1"
    assert session.state == FIELD_SELECTED
    assert session.fields[-1] == field

    updated = session.update_selected_field({"value": "Hello", "id": "other", "fontSize": 20})
    assert updated.id == "f1"
    assert updated.value == "Hello"
    assert session.selected_field.font_size == 20

    with pytest.raises(FieldValidationError):
        session.update_selected_field({"color": "blue"})
    assert session.selected_field.value == "Hello"

    session.delete_field("f1")
    assert session.state == IDLE
    assert session.fields == DEFAULT_FIELDS["participation"]
    assert session.update_selected_field({"value": "x"}) is None


def test_click_hits_field_through_scaled_viewport(session):
    viewport = Viewport(421, 297.5, device_pixel_ratio=2)
    assert session.click(421, 320, viewport) == "name"
    assert session.state == FIELD_SELECTED
    assert session.click(10, 10, viewport) is None
    assert session.state == IDLE


def test_click_prefers_topmost_field(session):
    session.add_field()
    session.add_field()
    session.deselect()
    assert session.click(421, 297.5, PAGE) == "f2"


def test_click_ignored_in_preview_mode(session):
    session.select_field("date")
    assert session.toggle_preview() is True
    assert session.click(421, 320, PAGE) is None
    assert session.selected_id == "date"


def test_drag_keeps_pointer_offset(session):
    session.select_field("name")
    session.begin_drag("name", 430, 330, PAGE)
    assert session.state == DRAGGING
    moved = session.drag_to(500, 400)
    assert (moved.x, moved.y) == (491, 405)
    session.end_drag()
    assert session.state == FIELD_SELECTED
    assert session.fields[1] == DEFAULT_FIELDS["participation"][1]


def test_drag_on_scaled_display(session):
    session.select_field("name")
    session.begin_drag("name", 210.5, 167.5, Viewport(421, 297.5))
    moved = session.drag_to(250, 150)
    assert moved.x == pytest.approx(500)
    assert moved.y == pytest.approx(300)


def test_drag_rules(session):
    with pytest.raises(EditorStateError):
        session.begin_drag("name", 0, 0, PAGE)
    session.end_drag()
    assert session.state == IDLE

    session.select_field("name")
    session.begin_drag("name", 421, 335, PAGE)
    with pytest.raises(EditorStateError):
        session.select_field("event")
    with pytest.raises(EditorStateError):
        session.toggle_preview()
    with pytest.raises(EditorStateError):
        session.switch_kind("awardee")
    session.end_drag()

    session.toggle_preview()
    with pytest.raises(EditorStateError):
        session.begin_drag("name", 421, 335, PAGE)
    with pytest.raises(EditorStateError):
        session.drag_to(1, 1)


def test_drafts_are_independent_per_kind(session):
    session.select_field("name")
    session.update_selected_field({"value": "Changed"})
    session.switch_kind("awardee")
    assert session.selected_id is None
    assert session.fields == DEFAULT_FIELDS["awardee"]
    session.switch_kind("participation")
    assert session.fields[0].value == "Changed"


def test_display_text_follows_preview_mode(session):
    field = session.fields[0]
    assert session.display_text(field) == "{{attendee_name}}"
    session.toggle_preview()
    assert session.display_text(field) == "Juan Dela Cruz"


def test_save_requires_image(session, store):
    with pytest.raises(EditorStateError):
        session.save()
    session.stage_image("asset://bg.png")
    session.save()
    assert store.puts == [(1, "participation")]
    assert store.templates[(1, "participation")].fields[0]["id"] == "name"


def test_save_all_reports_per_kind(session, store, caplog):
    session.stage_image("asset://p.png", kind="participation")
    session.stage_image("asset://a.png", kind="awardee")
    store.fail_put_kinds = {"awardee"}
    report = session.save_all()
    assert report.saved == ("participation",)
    assert report.failed == ("awardee",)
    assert report.success_count == 1
    assert report.failure_count == 1
    assert not report.ok
    assert "awardee" in report.errors["awardee"]
    assert "[editor] save failed" in caplog.text


def test_render_preview_uses_default_background(session, png_bytes):
    fetcher = StaticFetcher({DEFAULT_IMAGE_URL: png_bytes})
    result = session.render_preview(fetcher)
    assert result.data_url.startswith("data:image/png;base64,")
    assert fetcher.calls == [DEFAULT_IMAGE_URL]
