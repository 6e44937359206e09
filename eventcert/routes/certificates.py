from __future__ import annotations

import io
import json
import os
import zipfile

from flask import Blueprint, current_app, jsonify, request, send_file

from ..app import db
from ..services.certificate_batch import generate_batch
from ..services.record_store import SQLAlchemyRecordStore
from ..shared.certificate_fields import normalize_kind
from ..shared.certificates import build_compositor
from ..shared.errors import CertificateError

bp = Blueprint("certificates", __name__, url_prefix="/api")


def _error_response(exc: CertificateError, fallback: str):
    if exc.status in (400, 404):
        return jsonify({"error": str(exc)}), exc.status
    return jsonify({"error": fallback, "details": str(exc)}), 500


def _pdf_response(pdf: bytes, filename: str):
    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=filename,
    )


@bp.post("/generate-certificate")
def generate_certificate():
    payload = request.get_json(silent=True) or {}
    reference_id = payload.get("referenceId")
    kind = payload.get("templateType") or "participation"
    current_app.logger.info(
        "[CERT] generate reference=%s kind=%s", reference_id, kind
    )
    try:
        document = build_compositor().generate_document(reference_id, kind)
    except CertificateError as exc:
        current_app.logger.error(
            "[CERT-FAIL] reference=%s kind=%s step=%s: %s",
            reference_id,
            kind,
            exc.step,
            exc,
        )
        return _error_response(exc, "Failed to generate certificate")
    return _pdf_response(document.pdf, document.filename)


def _unique_name(name: str, used: set[str]) -> str:
    candidate = name
    stem, ext = os.path.splitext(name)
    counter = 2
    while candidate in used:
        candidate = f"{stem}_{counter}{ext}"
        counter += 1
    used.add(candidate)
    return candidate


@bp.post("/certificates/bulk")
def bulk_certificates():
    payload = request.get_json(silent=True) or {}
    try:
        kind = normalize_kind(payload.get("templateType"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    reference_ids = payload.get("referenceIds")
    event_id = payload.get("eventId")
    store = SQLAlchemyRecordStore(db.session)
    if not reference_ids:
        if event_id in (None, ""):
            return jsonify({"error": "Missing referenceIds or eventId"}), 400
        try:
            event_id = int(event_id)
        except (TypeError, ValueError):
            return jsonify({"error": "Invalid eventId"}), 400
        if store.get_event(event_id) is None:
            return jsonify({"error": "Event not found"}), 404
        reference_ids = [a.reference_id for a in store.list_attendees(event_id)]
    elif not isinstance(reference_ids, list):
        return jsonify({"error": "referenceIds must be a list"}), 400

    report = generate_batch(
        build_compositor(),
        [str(ref) for ref in reference_ids],
        kind,
        delay_seconds=current_app.config.get("CERT_BATCH_DELAY_SECONDS", 0.5),
        label_with_kind=True,
    )

    buffer = io.BytesIO()
    used: set[str] = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for item in report.succeeded:
            archive.writestr(_unique_name(item.filename, used), item.pdf)
        archive.writestr("report.json", json.dumps(report.summary(), indent=2))

    buffer.seek(0)
    resp = send_file(
        buffer,
        mimetype="application/zip",
        as_attachment=True,
        download_name=f"certificates_{kind}.zip",
    )
    resp.headers["X-Certificates-Succeeded"] = str(len(report.succeeded))
    resp.headers["X-Certificates-Failed"] = str(len(report.failed))
    return resp
