import os
import pathlib
import sys
from datetime import date
from io import BytesIO

import pytest
from PIL import Image

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from eventcert.app import create_app, db
from eventcert.services.record_store import (
    AttendeeRecord,
    EventRecord,
    RecordStore,
    TemplateRecord,
)
from eventcert.shared.certificate_fields import fields_to_dicts
from eventcert.shared.errors import TemplateAssetError, TemplateStoreError


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


@pytest.fixture
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ.pop("CERT_ASSETS_DIR", None)
    application = create_app()
    application.config["CERT_BATCH_DELAY_SECONDS"] = 0
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_png(size=(84, 60), color=(250, 245, 230)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


class FixedWidthMetrics:
    """Every glyph is half the font size wide."""

    def width_of(self, text, size, weight):
        return len(text or "") * size * 0.5


class MemoryStore(RecordStore):
    def __init__(self):
        self.attendees = {}
        self.events = {}
        self.templates = {}
        self.fail_reads = False
        self.fail_put_kinds = set()
        self.puts = []

    def add_event(
        self,
        event_id,
        name="Tech Summit 2024",
        venue="Cebu City",
        start_date=date(2024, 10, 16),
        end_date=date(2024, 10, 18),
    ):
        self.events[event_id] = EventRecord(event_id, name, venue, start_date, end_date)
        return self.events[event_id]

    def add_attendee(
        self, reference_id, event_id, personal_name, last_name, middle_name=None
    ):
        self.attendees[reference_id] = AttendeeRecord(
            reference_id=reference_id,
            personal_name=personal_name,
            middle_name=middle_name,
            last_name=last_name,
            email=f"{reference_id.lower()}@example.com",
            event_id=event_id,
        )
        return self.attendees[reference_id]

    def add_template(self, event_id, kind, image_url, fields):
        self.templates[(event_id, kind)] = TemplateRecord(
            event_id, kind, image_url, list(fields)
        )

    def get_attendee(self, reference_id):
        return self.attendees.get(reference_id)

    def get_event(self, event_id):
        return self.events.get(event_id)

    def get_template(self, event_id, kind):
        if self.fail_reads:
            raise TemplateStoreError("database unavailable")
        return self.templates.get((event_id, kind))

    def put_template(self, event_id, kind, image_url, fields):
        if kind in self.fail_put_kinds:
            raise TemplateStoreError(f"failed to save {kind} template")
        self.puts.append((event_id, kind))
        self.add_template(event_id, kind, image_url, fields_to_dicts(fields))

    def list_attendees(self, event_id):
        return [a for a in self.attendees.values() if a.event_id == event_id]


class StaticFetcher:
    def __init__(self, images=None):
        self.images = dict(images or {})
        self.calls = []

    def fetch_bytes(self, url):
        self.calls.append(url)
        if url not in self.images:
            raise TemplateAssetError(f"Failed to fetch template image: {url}", step="image")
        return self.images[url]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def metrics():
    return FixedWidthMetrics()
