from __future__ import annotations

from sqlalchemy.orm import validates

from ..app import db
from ..shared.certificate_fields import TEMPLATE_KINDS


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    venue = db.Column(db.String(255))
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, server_default=db.func.now())


class Attendee(db.Model):
    __tablename__ = "attendees"

    id = db.Column(db.Integer, primary_key=True)
    reference_id = db.Column(db.String(64), unique=True, nullable=False)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    personal_name = db.Column(db.String(120))
    middle_name = db.Column(db.String(120))
    last_name = db.Column(db.String(120))
    email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    event = db.relationship("Event", backref="attendees")

    @validates("email")
    def strip_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.strip() if value else value


class CertificateTemplate(db.Model):
    __tablename__ = "certificate_templates"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer,
        db.ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    template_type = db.Column(db.String(20), nullable=False, default="participation")
    image_url = db.Column(db.Text)
    fields = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )
    __table_args__ = (
        db.UniqueConstraint(
            "event_id", "template_type", name="uix_cert_template_event_type"
        ),
    )

    @validates("template_type")
    def check_template_type(self, key, value):
        if value not in TEMPLATE_KINDS:
            raise ValueError(f"Unsupported template type: {value!r}")
        return value
