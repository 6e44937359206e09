from __future__ import annotations

import logging
from typing import NamedTuple

from .certificate_fields import (
    PAGE_SIZE,
    TextField,
    default_fields,
    normalize_kind,
    parse_stored_fields,
)
from .errors import (
    CertificateRequestError,
    FieldValidationError,
    TemplateNotConfiguredError,
    TemplateStoreError,
)

logger = logging.getLogger("eventcert.certificates")

DEFAULT_TEMPLATE_IMAGE = "certificate-template.png"
DEFAULT_IMAGE_URL = f"asset://{DEFAULT_TEMPLATE_IMAGE}"


class TemplateResolution(NamedTuple):
    event_id: int
    kind: str
    image_url: str
    fields: tuple[TextField, ...]
    fields_source: str
    image_source: str


def resolve_template(
    store,
    event_id: int,
    kind: str,
    *,
    page_size: tuple[float, float] = PAGE_SIZE,
    require_stored: bool = False,
) -> TemplateResolution:
    """Return the background and field list to draw for ``(event_id, kind)``.

    A stored template with fields is used verbatim. Missing templates, empty
    field lists and missing images each fall back independently to the
    built-in defaults. Store read failures are logged and treated as missing.
    """
    try:
        kind = normalize_kind(kind)
    except ValueError as exc:
        raise CertificateRequestError(str(exc), step="template", identifier=kind) from exc

    try:
        record = store.get_template(event_id, kind)
    except TemplateStoreError as exc:
        logger.error(
            "[cert-template] read failed event=%s kind=%s; using defaults: %s",
            event_id,
            kind,
            exc,
        )
        record = None

    if record is None and require_stored:
        raise TemplateNotConfiguredError(
            f"{kind} template not configured for this event",
            step="template",
            identifier=event_id,
        )

    stored_fields: tuple[TextField, ...] = ()
    if record and record.fields:
        try:
            stored_fields = parse_stored_fields(record.fields)
        except FieldValidationError as exc:
            logger.warning(
                "[cert-template] stored fields unusable event=%s kind=%s; using defaults: %s",
                event_id,
                kind,
                exc,
            )
    if stored_fields:
        fields = stored_fields
        fields_source = "stored"
    else:
        fields = default_fields(kind, page_size)
        fields_source = "default"

    stored_image = (record.image_url or "").strip() if record else ""
    if stored_image:
        image_url = stored_image
        image_source = "stored"
    else:
        image_url = DEFAULT_IMAGE_URL
        image_source = "default"

    logger.info(
        "[cert-template] event=%s kind=%s fields=%s(%s) image=%s",
        event_id,
        kind,
        fields_source,
        len(fields),
        image_source,
    )
    return TemplateResolution(
        event_id=event_id,
        kind=kind,
        image_url=image_url,
        fields=fields,
        fields_source=fields_source,
        image_source=image_source,
    )
