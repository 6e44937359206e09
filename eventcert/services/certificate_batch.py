from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..shared.certificate_fields import DEFAULT_TEMPLATE_KIND
from ..shared.certificates import CertificateCompositor, certificate_filename
from ..shared.errors import CertificateError

logger = logging.getLogger("eventcert.certificates")

DEFAULT_DELAY_SECONDS = 0.5


@dataclass(frozen=True)
class BatchItem:
    reference_id: str
    ok: bool
    filename: str | None = None
    pdf: bytes | None = None
    error: str | None = None
    status: int | None = None


@dataclass
class BatchReport:
    items: list[BatchItem] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BatchItem]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> list[BatchItem]:
        return [item for item in self.items if not item.ok]

    def summary(self) -> dict:
        return {
            "total": len(self.items),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "items": [
                {
                    "referenceId": item.reference_id,
                    "ok": item.ok,
                    "filename": item.filename,
                    "error": item.error,
                    "status": item.status,
                }
                for item in self.items
            ],
        }


def generate_batch(
    compositor: CertificateCompositor,
    reference_ids: Iterable[str],
    kind: str = DEFAULT_TEMPLATE_KIND,
    *,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    label_with_kind: bool = False,
) -> BatchReport:
    """Generate one certificate per reference, isolating failures.

    Items are processed one at a time with ``delay_seconds`` between them so
    the image host and the database are not flooded.
    """
    report = BatchReport()
    for index, reference_id in enumerate(reference_ids):
        if index and delay_seconds > 0:
            sleep(delay_seconds)
        try:
            document = compositor.generate_document(reference_id, kind)
        except CertificateError as exc:
            logger.error(
                "[CERT-FAIL] reference=%s kind=%s step=%s status=%s: %s",
                reference_id,
                kind,
                exc.step,
                exc.status,
                exc,
            )
            report.items.append(
                BatchItem(
                    reference_id=reference_id,
                    ok=False,
                    error=str(exc),
                    status=exc.status,
                )
            )
            continue
        except Exception as exc:
            logger.exception(
                "[CERT-FAIL] reference=%s kind=%s unexpected error", reference_id, kind
            )
            report.items.append(
                BatchItem(reference_id=reference_id, ok=False, error=str(exc), status=500)
            )
            continue
        filename = (
            certificate_filename(document.attendee_name, document.kind)
            if label_with_kind
            else document.filename
        )
        report.items.append(
            BatchItem(
                reference_id=reference_id,
                ok=True,
                filename=filename,
                pdf=document.pdf,
            )
        )
    logger.info(
        "[CERT-BATCH] kind=%s total=%s succeeded=%s failed=%s",
        kind,
        len(report.items),
        len(report.succeeded),
        len(report.failed),
    )
    return report
