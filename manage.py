from eventcert.app import create_app, db
import json
import os

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from flask import current_app
from eventcert.services.certificate_batch import generate_batch
from eventcert.services.record_store import SQLAlchemyRecordStore
from eventcert.shared.certificate_fields import TEMPLATE_KINDS
from eventcert.shared.certificate_templates import resolve_template
from eventcert.shared.certificates import build_compositor
from eventcert.shared.errors import CertificateError
from eventcert.shared.storage import ensure_dir, write_atomic


migrate = Migrate()


def create_eventcert_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_eventcert_app)


@cli.command("gen_cert")
@click.option("--reference", "reference_id", required=True)
@click.option(
    "--kind",
    type=click.Choice(TEMPLATE_KINDS),
    default="participation",
    show_default=True,
)
@click.option("--out", "out_path", default=None, help="Output path for the PDF")
def gen_cert(reference_id: str, kind: str, out_path: str | None):
    """Generate a certificate for one attendee."""
    try:
        document = build_compositor().generate_document(reference_id, kind)
    except CertificateError as exc:
        click.echo(f"Failed at step={exc.step}: {exc}", err=True)
        raise SystemExit(1)
    path = out_path or document.filename
    write_atomic(path, document.pdf)
    click.echo(path)


@cli.command("bulk_certs")
@click.option("--event", "event_id", required=True, type=int)
@click.option(
    "--kind",
    type=click.Choice(TEMPLATE_KINDS),
    default="participation",
    show_default=True,
)
@click.option("--out-dir", "out_dir", default="certificates", show_default=True)
@click.option(
    "--delay",
    type=float,
    default=None,
    help="Seconds to wait between attendees (defaults to CERT_BATCH_DELAY_SECONDS)",
)
def bulk_certs(event_id: int, kind: str, out_dir: str, delay: float | None):
    """Generate certificates for every attendee of an event."""
    store = SQLAlchemyRecordStore(db.session)
    if store.get_event(event_id) is None:
        click.echo("Event not found", err=True)
        raise SystemExit(1)
    reference_ids = [a.reference_id for a in store.list_attendees(event_id)]
    if not reference_ids:
        click.echo("No attendees")
        return
    if delay is None:
        delay = current_app.config.get("CERT_BATCH_DELAY_SECONDS", 0.5)

    report = generate_batch(
        build_compositor(),
        reference_ids,
        kind,
        delay_seconds=delay,
        label_with_kind=True,
    )
    ensure_dir(out_dir)
    for item in report.succeeded:
        write_atomic(os.path.join(out_dir, f"{item.reference_id}_{item.filename}"), item.pdf)
    for item in report.failed:
        click.echo(f"{item.reference_id}: {item.error}", err=True)
    summary = f"succeeded={len(report.succeeded)} failed={len(report.failed)}"
    click.echo(summary)
    current_app.logger.info("[CERT-BATCH] cli event=%s kind=%s %s", event_id, kind, summary)


@cli.command("show_template")
@click.option("--event", "event_id", required=True, type=int)
@click.option(
    "--kind",
    type=click.Choice(TEMPLATE_KINDS),
    default="participation",
    show_default=True,
)
def show_template(event_id: int, kind: str):
    """Print the template that generation would use, after fallbacks."""
    resolution = resolve_template(SQLAlchemyRecordStore(db.session), event_id, kind)
    click.echo(
        json.dumps(
            {
                "eventId": resolution.event_id,
                "templateType": resolution.kind,
                "imageUrl": resolution.image_url,
                "imageSource": resolution.image_source,
                "fieldsSource": resolution.fields_source,
                "fields": [f.to_dict() for f in resolution.fields],
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    cli()
