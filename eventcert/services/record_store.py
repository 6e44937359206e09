from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from ..models import Attendee, CertificateTemplate, Event
from ..shared.certificate_fields import TextField, fields_to_dicts
from ..shared.errors import TemplateStoreError

logger = logging.getLogger("eventcert.store")


class AttendeeRecord(NamedTuple):
    reference_id: str
    personal_name: str | None
    middle_name: str | None
    last_name: str | None
    email: str | None
    event_id: int | None


class EventRecord(NamedTuple):
    id: int
    name: str
    venue: str | None
    start_date: date | None
    end_date: date | None


class TemplateRecord(NamedTuple):
    event_id: int
    kind: str
    image_url: str | None
    fields: list[dict[str, Any]]


class RecordStore:
    """Read/write access to attendees, events and certificate templates."""

    def get_attendee(self, reference_id: str) -> AttendeeRecord | None:
        raise NotImplementedError

    def get_event(self, event_id: int) -> EventRecord | None:
        raise NotImplementedError

    def get_template(self, event_id: int, kind: str) -> TemplateRecord | None:
        raise NotImplementedError

    def put_template(
        self,
        event_id: int,
        kind: str,
        image_url: str,
        fields: Iterable[TextField],
    ) -> None:
        raise NotImplementedError

    def list_attendees(self, event_id: int) -> list[AttendeeRecord]:
        raise NotImplementedError


def _attendee_record(row: Attendee) -> AttendeeRecord:
    return AttendeeRecord(
        reference_id=row.reference_id,
        personal_name=row.personal_name,
        middle_name=row.middle_name,
        last_name=row.last_name,
        email=row.email,
        event_id=row.event_id,
    )


class SQLAlchemyRecordStore(RecordStore):
    def __init__(self, session) -> None:
        self.session = session

    def get_attendee(self, reference_id: str) -> AttendeeRecord | None:
        try:
            row = (
                self.session.query(Attendee)
                .filter(Attendee.reference_id == reference_id)
                .one_or_none()
            )
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return _attendee_record(row) if row else None

    def get_event(self, event_id: int) -> EventRecord | None:
        if event_id is None:
            return None
        try:
            row = self.session.get(Event, event_id)
        except SQLAlchemyError:
            self.session.rollback()
            raise
        if not row:
            return None
        return EventRecord(
            id=row.id,
            name=row.name,
            venue=row.venue,
            start_date=row.start_date,
            end_date=row.end_date,
        )

    def get_template(self, event_id: int, kind: str) -> TemplateRecord | None:
        try:
            row = (
                self.session.query(CertificateTemplate)
                .filter(
                    CertificateTemplate.event_id == event_id,
                    CertificateTemplate.template_type == kind,
                )
                .one_or_none()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TemplateStoreError(
                f"failed to read {kind} template for event {event_id}"
            ) from exc
        if not row:
            return None
        return TemplateRecord(
            event_id=row.event_id,
            kind=row.template_type,
            image_url=row.image_url,
            fields=list(row.fields or []),
        )

    def put_template(
        self,
        event_id: int,
        kind: str,
        image_url: str,
        fields: Iterable[TextField],
    ) -> None:
        payload = fields_to_dicts(fields)
        try:
            row = (
                self.session.query(CertificateTemplate)
                .filter(
                    CertificateTemplate.event_id == event_id,
                    CertificateTemplate.template_type == kind,
                )
                .one_or_none()
            )
            if row:
                logger.info(
                    "[cert-template] updating id=%s event=%s kind=%s fields=%s",
                    row.id,
                    event_id,
                    kind,
                    len(payload),
                )
                row.image_url = image_url
                row.fields = payload
            else:
                logger.info(
                    "[cert-template] creating event=%s kind=%s fields=%s",
                    event_id,
                    kind,
                    len(payload),
                )
                self.session.add(
                    CertificateTemplate(
                        event_id=event_id,
                        template_type=kind,
                        image_url=image_url,
                        fields=payload,
                    )
                )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TemplateStoreError(
                f"failed to save {kind} template for event {event_id}"
            ) from exc

    def list_attendees(self, event_id: int) -> list[AttendeeRecord]:
        try:
            rows = (
                self.session.query(Attendee)
                .filter(Attendee.event_id == event_id)
                .order_by(Attendee.last_name, Attendee.personal_name, Attendee.id)
                .all()
            )
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return [_attendee_record(row) for row in rows]
