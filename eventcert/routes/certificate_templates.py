from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..app import db
from ..models import Event
from ..services.certificates_preview import render_preview
from ..services.record_store import SQLAlchemyRecordStore
from ..shared.certificate_fields import (
    PAGE_SIZE,
    fields_to_dicts,
    normalize_kind,
    parse_fields,
)
from ..shared.certificate_templates import DEFAULT_IMAGE_URL
from ..shared.certificates import build_image_fetcher
from ..shared.errors import (
    FieldValidationError,
    TemplateAssetError,
    TemplateStoreError,
)

bp = Blueprint(
    "certificate_templates", __name__, url_prefix="/api/certificate-template"
)


def _parse_event_id(raw) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


@bp.get("")
def get_template():
    event_id = _parse_event_id(request.args.get("eventId"))
    if event_id is None:
        return jsonify({"error": "Missing eventId"}), 400
    try:
        kind = normalize_kind(request.args.get("templateType"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    current_app.logger.info(
        "[cert-template] fetch event=%s kind=%s", event_id, kind
    )
    try:
        record = SQLAlchemyRecordStore(db.session).get_template(event_id, kind)
    except TemplateStoreError as exc:
        current_app.logger.error("[cert-template] fetch failed: %s", exc)
        return jsonify({"error": "Failed to fetch template"}), 500
    if record is None:
        return jsonify({"template": None})
    return jsonify(
        {
            "template": {
                "event_id": record.event_id,
                "template_type": record.kind,
                "image_url": record.image_url,
                "fields": record.fields,
            }
        }
    )


@bp.post("")
def save_template():
    payload = request.get_json(silent=True) or {}
    event_id = _parse_event_id(payload.get("eventId"))
    image_url = (payload.get("imageUrl") or "").strip()
    if event_id is None or not image_url:
        return jsonify({"error": "Missing required fields"}), 400
    try:
        kind = normalize_kind(payload.get("templateType"))
        fields = parse_fields(payload.get("fields") or [])
    except (ValueError, FieldValidationError) as exc:
        return jsonify({"error": "Invalid template", "details": str(exc)}), 400
    if db.session.get(Event, event_id) is None:
        return jsonify({"error": "Event not found"}), 404

    try:
        SQLAlchemyRecordStore(db.session).put_template(event_id, kind, image_url, fields)
    except TemplateStoreError as exc:
        current_app.logger.error(
            "[cert-template] save failed event=%s kind=%s: %s", event_id, kind, exc
        )
        return jsonify({"error": "Failed to save template", "details": str(exc)}), 500
    return jsonify({"success": True, "fields": fields_to_dicts(fields)})


@bp.post("/preview")
def preview_template():
    payload = request.get_json(silent=True) or {}
    try:
        fields = parse_fields(payload.get("fields") or [])
    except FieldValidationError as exc:
        return jsonify({"error": "Invalid template", "details": str(exc)}), 400
    image_url = (payload.get("imageUrl") or "").strip() or DEFAULT_IMAGE_URL
    selected = payload.get("selectedFieldId")
    selected_id = None if selected in (None, "") else str(selected)
    try:
        image_bytes = build_image_fetcher().fetch_bytes(image_url)
        result = render_preview(
            image_bytes,
            fields,
            preview_mode=bool(payload.get("previewMode")),
            selected_id=selected_id,
            page_size=PAGE_SIZE,
        )
    except TemplateAssetError as exc:
        current_app.logger.warning("[cert-preview] background unavailable: %s", exc)
        return jsonify({"error": "Template image unavailable", "details": str(exc)}), 400
    return jsonify({"image": result.data_url, "warnings": list(result.warnings)})
