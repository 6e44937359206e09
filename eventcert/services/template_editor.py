from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from ..shared.certificate_fields import (
    DEFAULT_TEMPLATE_KIND,
    PAGE_SIZE,
    TEMPLATE_KINDS,
    TextField,
    default_fields,
    new_field,
    normalize_kind,
    parse_stored_fields,
)
from ..shared.certificate_templates import DEFAULT_IMAGE_URL
from ..shared.certificates_layout import (
    FontMetrics,
    field_bounding_box,
)
from ..shared.errors import EditorStateError, FieldValidationError, TemplateStoreError
from ..shared.placeholders import SAMPLE_CONTEXT, substitute
from .certificates_preview import PreviewFontMetrics, PreviewResult, render_preview

logger = logging.getLogger("eventcert.editor")

IDLE = "idle"
FIELD_SELECTED = "field-selected"
DRAGGING = "dragging"


@dataclass(frozen=True)
class Draft:
    image_url: str | None
    fields: tuple[TextField, ...]


@dataclass(frozen=True)
class Viewport:
    """Maps pointer positions on a (possibly scaled) display to page points.

    ``device_pixel_ratio`` is applied when pointer positions are reported in
    physical pixels rather than CSS pixels.
    """

    display_width: float
    display_height: float
    device_pixel_ratio: float = 1.0
    page_size: tuple[float, float] = PAGE_SIZE

    def to_page(self, x: float, y: float) -> tuple[float, float]:
        if self.display_width <= 0 or self.display_height <= 0:
            raise EditorStateError("viewport has no visible area")
        ratio = self.device_pixel_ratio or 1.0
        return (
            (x / ratio) * self.page_size[0] / self.display_width,
            (y / ratio) * self.page_size[1] / self.display_height,
        )


@dataclass(frozen=True)
class _Drag:
    field_id: str
    offset_x: float
    offset_y: float
    viewport: Viewport


@dataclass(frozen=True)
class SaveReport:
    saved: tuple[str, ...]
    failed: tuple[str, ...]
    errors: Mapping[str, str]

    @property
    def success_count(self) -> int:
        return len(self.saved)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed


def _default_id_factory() -> str:
    return f"field_{uuid.uuid4().hex[:12]}"


class EditorSession:
    """In-memory drafts of an event's three certificate templates.

    Field lists are immutable tuples; every edit swaps in a new tuple.
    Selection, dragging and preview mode follow a small state machine:
    ``idle -> field-selected -> dragging -> field-selected``.
    """

    def __init__(
        self,
        store,
        event_id: int,
        *,
        page_size: tuple[float, float] = PAGE_SIZE,
        metrics: FontMetrics | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.event_id = event_id
        self.page_size = page_size
        self.metrics = metrics or PreviewFontMetrics()
        self.id_factory = id_factory or _default_id_factory
        self.kind = DEFAULT_TEMPLATE_KIND
        self.drafts: dict[str, Draft] = {
            kind: Draft(image_url=None, fields=default_fields(kind, page_size))
            for kind in TEMPLATE_KINDS
        }
        self.selected_id: str | None = None
        self.preview_mode = False
        self._drag: _Drag | None = None

    # -- loading -----------------------------------------------------------

    def open(self) -> "EditorSession":
        for kind in TEMPLATE_KINDS:
            try:
                record = self.store.get_template(self.event_id, kind)
            except TemplateStoreError as exc:
                logger.error(
                    "[editor] load failed event=%s kind=%s: %s", self.event_id, kind, exc
                )
                continue
            if record is None:
                continue
            try:
                fields = parse_stored_fields(record.fields)
            except FieldValidationError as exc:
                logger.warning(
                    "[editor] stored fields invalid event=%s kind=%s: %s",
                    self.event_id,
                    kind,
                    exc,
                )
                fields = ()
            self.drafts[kind] = Draft(
                image_url=record.image_url or None,
                fields=fields or default_fields(kind, self.page_size),
            )
        return self

    # -- state -------------------------------------------------------------

    @property
    def state(self) -> str:
        if self._drag is not None:
            return DRAGGING
        if self.selected_id is not None:
            return FIELD_SELECTED
        return IDLE

    @property
    def draft(self) -> Draft:
        return self.drafts[self.kind]

    @property
    def fields(self) -> tuple[TextField, ...]:
        return self.draft.fields

    @property
    def selected_field(self) -> TextField | None:
        return self._find(self.selected_id) if self.selected_id else None

    def _find(self, field_id: str | None) -> TextField | None:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def _require_not_dragging(self, action: str) -> None:
        if self._drag is not None:
            raise EditorStateError(f"cannot {action} while dragging")

    def _set_fields(self, fields: tuple[TextField, ...]) -> None:
        self.drafts[self.kind] = replace(self.draft, fields=fields)

    def switch_kind(self, kind: str) -> None:
        self._require_not_dragging("switch template")
        self.kind = normalize_kind(kind)
        self.selected_id = None

    def stage_image(self, image_url: str, kind: str | None = None) -> None:
        target = normalize_kind(kind) if kind else self.kind
        self.drafts[target] = replace(self.drafts[target], image_url=image_url or None)

    # -- selection ---------------------------------------------------------

    def select_field(self, field_id: str) -> TextField:
        self._require_not_dragging("change selection")
        field = self._find(field_id)
        if field is None:
            raise EditorStateError(f"unknown field {field_id!r}")
        self.selected_id = field.id
        return field

    def deselect(self) -> None:
        self._require_not_dragging("change selection")
        self.selected_id = None

    def click(self, x: float, y: float, viewport: Viewport) -> str | None:
        """Select the topmost field under the pointer, or clear the selection."""
        if self.preview_mode:
            return None
        self._require_not_dragging("change selection")
        page_x, page_y = viewport.to_page(x, y)
        for field in reversed(self.fields):
            box = field_bounding_box(field, self.display_text(field), self.metrics)
            if box.contains(page_x, page_y):
                self.selected_id = field.id
                return field.id
        self.selected_id = None
        return None

    # -- field edits -------------------------------------------------------

    def add_field(self) -> TextField:
        self._require_not_dragging("add a field")
        existing = {f.id for f in self.fields}
        field_id = self.id_factory()
        while field_id in existing:
            field_id = self.id_factory()
        field = new_field(field_id, self.page_size)
        self._set_fields(self.fields + (field,))
        self.selected_id = field.id
        return field

    def delete_field(self, field_id: str) -> None:
        self._require_not_dragging("delete a field")
        self._set_fields(tuple(f for f in self.fields if f.id != field_id))
        if self.selected_id == field_id:
            self.selected_id = None

    def update_selected_field(self, patch: Mapping[str, Any]) -> TextField | None:
        current = self.selected_field
        if current is None:
            return None
        merged = {**current.to_dict(), **dict(patch), "id": current.id}
        updated = TextField.from_dict(merged)
        self._set_fields(
            tuple(updated if f.id == current.id else f for f in self.fields)
        )
        return updated

    # -- dragging ----------------------------------------------------------

    def begin_drag(self, field_id: str, x: float, y: float, viewport: Viewport) -> None:
        if self.preview_mode:
            raise EditorStateError("dragging is disabled in preview mode")
        self._require_not_dragging("start another drag")
        if field_id != self.selected_id:
            raise EditorStateError("only the selected field can be dragged")
        field = self._find(field_id)
        if field is None:
            raise EditorStateError(f"unknown field {field_id!r}")
        page_x, page_y = viewport.to_page(x, y)
        self._drag = _Drag(
            field_id=field.id,
            offset_x=page_x - field.x,
            offset_y=page_y - field.y,
            viewport=viewport,
        )

    def drag_to(self, x: float, y: float) -> TextField:
        drag = self._drag
        if drag is None:
            raise EditorStateError("no drag in progress")
        page_x, page_y = drag.viewport.to_page(x, y)
        moved: TextField | None = None
        fields = []
        for field in self.fields:
            if field.id == drag.field_id:
                field = replace(field, x=page_x - drag.offset_x, y=page_y - drag.offset_y)
                moved = field
            fields.append(field)
        self._set_fields(tuple(fields))
        if moved is None:
            raise EditorStateError(f"dragged field {drag.field_id!r} disappeared")
        return moved

    def end_drag(self) -> None:
        self._drag = None

    # -- preview -----------------------------------------------------------

    def toggle_preview(self) -> bool:
        self._require_not_dragging("toggle preview")
        self.preview_mode = not self.preview_mode
        return self.preview_mode

    def display_text(self, field: TextField) -> str:
        if self.preview_mode:
            return substitute(field.value, SAMPLE_CONTEXT)
        return field.value

    def render_preview(self, fetcher) -> PreviewResult:
        image_bytes = fetcher.fetch_bytes(self.draft.image_url or DEFAULT_IMAGE_URL)
        return render_preview(
            image_bytes,
            self.fields,
            preview_mode=self.preview_mode,
            selected_id=self.selected_id,
            page_size=self.page_size,
            metrics=self.metrics,
        )

    # -- persistence -------------------------------------------------------

    def save(self, kind: str | None = None) -> None:
        target = normalize_kind(kind) if kind else self.kind
        draft = self.drafts[target]
        if not draft.image_url:
            raise EditorStateError(f"{target} template has no image; upload one first")
        self.store.put_template(self.event_id, target, draft.image_url, draft.fields)
        logger.info(
            "[editor] saved event=%s kind=%s fields=%s",
            self.event_id,
            target,
            len(draft.fields),
        )

    def save_all(self) -> SaveReport:
        saved: list[str] = []
        failed: list[str] = []
        errors: dict[str, str] = {}
        for kind in TEMPLATE_KINDS:
            if not self.drafts[kind].image_url:
                continue
            try:
                self.save(kind)
            except Exception as exc:
                logger.exception(
                    "[editor] save failed event=%s kind=%s", self.event_id, kind
                )
                failed.append(kind)
                errors[kind] = str(exc)
            else:
                saved.append(kind)
        logger.info(
            "[editor] save_all event=%s saved=%s failed=%s",
            self.event_id,
            len(saved),
            len(failed),
        )
        return SaveReport(saved=tuple(saved), failed=tuple(failed), errors=errors)
