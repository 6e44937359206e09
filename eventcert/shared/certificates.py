from __future__ import annotations

import logging
import re
from io import BytesIO
from typing import Iterable, NamedTuple

from flask import current_app
from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..app import db
from ..services.image_fetch import ImageFetcher
from ..services.record_store import SQLAlchemyRecordStore
from .certificate_fields import (
    DEFAULT_TEMPLATE_KIND,
    PAGE_SIZE,
    TEMPLATE_KIND_LABELS,
    TextField,
    hex_to_rgb,
    normalize_kind,
)
from .certificate_templates import resolve_template
from .certificates_layout import FontMetrics, ReportlabFontMetrics, resolve_anchor
from .errors import (
    AttendeeNotFoundError,
    CertificateError,
    CertificateGenerationError,
    CertificateRequestError,
    EventNotFoundError,
    TemplateAssetError,
)
from .placeholders import RenderContext, build_render_context, substitute

logger = logging.getLogger("eventcert.certificates")

_PDF_MAGIC = b"%PDF-"


class CertificateDocument(NamedTuple):
    reference_id: str
    kind: str
    attendee_name: str
    filename: str
    pdf: bytes


def certificate_filename(full_name: str | None, kind: str | None = None) -> str:
    name = re.sub(r"\s+", "_", (full_name or "").strip())
    name = re.sub(r'[\\/:*?"<>|]+', "", name) or "Attendee"
    if kind:
        return f"Certificate_{TEMPLATE_KIND_LABELS[kind]}_{name}.pdf"
    return f"Certificate_{name}.pdf"


def _decode_raster(data: bytes) -> Image.Image:
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            if img.mode in ("RGBA", "LA", "P"):
                return img.convert("RGBA")
            return img.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise TemplateAssetError(
            f"Template image could not be decoded: {exc}", step="image"
        ) from exc


class CertificateCompositor:
    """Turns a template plus one attendee's data into a single-page PDF.

    ``require_template`` makes generation fail when no template is stored for
    the requested kind instead of falling back to the built-in defaults.
    """

    def __init__(
        self,
        store,
        fetcher,
        metrics: FontMetrics | None = None,
        *,
        page_size: tuple[float, float] = PAGE_SIZE,
        require_template: bool = False,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.metrics = metrics or ReportlabFontMetrics()
        self.page_size = (float(page_size[0]), float(page_size[1]))
        self.require_template = require_template

    def generate(self, reference_id: str, kind: str = DEFAULT_TEMPLATE_KIND) -> bytes:
        return self.generate_document(reference_id, kind).pdf

    def generate_document(
        self, reference_id: str, kind: str = DEFAULT_TEMPLATE_KIND
    ) -> CertificateDocument:
        reference = "" if reference_id is None else str(reference_id).strip()
        if not reference:
            raise CertificateRequestError("Missing reference ID", step="request")
        try:
            kind = normalize_kind(kind)
        except ValueError as exc:
            raise CertificateRequestError(
                str(exc), step="request", identifier=kind
            ) from exc

        step = "attendee"
        try:
            attendee = self.store.get_attendee(reference)
            if attendee is None:
                raise AttendeeNotFoundError(
                    "Attendee not found", step=step, identifier=reference
                )
            step = "event"
            event = self.store.get_event(attendee.event_id)
            if event is None:
                raise EventNotFoundError(
                    f"Event {attendee.event_id!r} not found for attendee",
                    step=step,
                    identifier=reference,
                )
            step = "context"
            context = build_render_context(attendee, event)
        except CertificateError:
            raise
        except Exception as exc:
            raise CertificateGenerationError(
                f"Failed to load records: {exc}", step=step, identifier=reference
            ) from exc

        pdf = self.render(context, event.id, kind, reference=reference)
        return CertificateDocument(
            reference_id=reference,
            kind=kind,
            attendee_name=context.attendee_name or "",
            filename=certificate_filename(context.attendee_name),
            pdf=pdf,
        )

    def render(
        self,
        context: RenderContext,
        event_id: int,
        kind: str,
        *,
        reference: str | None = None,
    ) -> bytes:
        step = "template"
        try:
            resolution = resolve_template(
                self.store,
                event_id,
                kind,
                page_size=self.page_size,
                require_stored=self.require_template,
            )
            step = "image"
            image_bytes = self.fetcher.fetch_bytes(resolution.image_url)
            step = "draw"
            pdf = self.render_fields(context, image_bytes, resolution.fields)
        except CertificateError:
            raise
        except Exception as exc:
            raise CertificateGenerationError(
                f"Failed to generate certificate: {exc}",
                step=step,
                identifier=reference or event_id,
            ) from exc
        logger.info(
            "[CERT] reference=%s event=%s kind=%s fields=%s(%s) image=%s bytes=%s",
            reference,
            event_id,
            resolution.kind,
            resolution.fields_source,
            len(resolution.fields),
            resolution.image_source,
            len(pdf),
        )
        return pdf

    def render_fields(
        self,
        context: RenderContext,
        image_bytes: bytes,
        fields: Iterable[TextField],
    ) -> bytes:
        if image_bytes[: len(_PDF_MAGIC)] == _PDF_MAGIC:
            return self._render_over_pdf(context, image_bytes, fields)
        background = _decode_raster(image_bytes)
        return self._draw_page(context, fields, background)

    def _draw_page(
        self,
        context: RenderContext,
        fields: Iterable[TextField],
        background: Image.Image | None,
    ) -> bytes:
        width, height = self.page_size
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height), invariant=1)
        if background is not None:
            # Stretched to the page; aspect ratio is not preserved.
            c.drawImage(
                ImageReader(background), 0, 0, width=width, height=height, mask="auto"
            )
        for field in fields:
            text = substitute(field.value, context)
            anchor = resolve_anchor(field, text, self.metrics, height)
            r, g, b = hex_to_rgb(field.color)
            c.setFillColorRGB(r, g, b)
            c.setFont(anchor.font_name, field.font_size)
            c.drawString(anchor.x, anchor.y, text)
        c.showPage()
        c.save()
        return buffer.getvalue()

    def _render_over_pdf(
        self,
        context: RenderContext,
        pdf_bytes: bytes,
        fields: Iterable[TextField],
    ) -> bytes:
        width, height = self.page_size
        try:
            base_page = PdfReader(BytesIO(pdf_bytes)).pages[0]
        except (PdfReadError, IndexError, ValueError) as exc:
            raise TemplateAssetError(
                f"Template PDF could not be read: {exc}", step="image"
            ) from exc
        base_page.scale_to(width, height)
        overlay = self._draw_page(context, fields, None)
        base_page.merge_page(PdfReader(BytesIO(overlay)).pages[0])
        writer = PdfWriter()
        writer.add_page(base_page)
        out_buf = BytesIO()
        writer.write(out_buf)
        return out_buf.getvalue()


def build_image_fetcher() -> ImageFetcher:
    config = current_app.config
    return ImageFetcher(
        config["CERT_ASSETS_DIR"],
        timeout=config.get("CERT_IMAGE_FETCH_TIMEOUT", 10.0),
    )


def build_compositor(*, require_template: bool | None = None) -> CertificateCompositor:
    """Compositor wired to the current app's database and asset settings."""
    if require_template is None:
        require_template = bool(current_app.config.get("CERT_REQUIRE_TEMPLATE"))
    return CertificateCompositor(
        SQLAlchemyRecordStore(db.session),
        build_image_fetcher(),
        require_template=require_template,
    )
