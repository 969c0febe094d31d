from datetime import datetime, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.enums import Roles
from models.service import Service
from models.user import User, Role
from security.password import hash_password
from services import components
from services.zoom import ZoomMeeting
from utils.errors import ProviderApiError

PASSWORD = "correct-horse-battery"
SLOT_START = datetime(2026, 11, 2, 15, 0)


class FakeZoom:
    """In-memory stand-in for ZoomClient used by orchestrator and route tests."""

    def __init__(self):
        self.created = []
        self.updated = []
        self.deleted = []
        self.recordings = {}
        self.fail_create = None
        self.fail_update = None
        self.fail_delete = None
        self.recordings_error = None
        self._next_id = 85000000000

    def create_meeting(self, topic, start_time, duration_minutes, timezone_name="UTC", **kwargs):
        if self.fail_create:
            raise self.fail_create
        self._next_id += 1
        meeting_id = str(self._next_id)
        self.created.append({
            "id": meeting_id,
            "topic": topic,
            "start_time": start_time,
            "duration": duration_minutes,
            "timezone": timezone_name,
            **kwargs,
        })
        return ZoomMeeting(id=meeting_id, join_url=f"https://zoom.test/j/{meeting_id}",
                           start_url=f"https://zoom.test/s/{meeting_id}")

    def update_meeting(self, meeting_id, fields):
        if self.fail_update:
            raise self.fail_update
        self.updated.append((meeting_id, fields))

    def delete_meeting(self, meeting_id):
        self.deleted.append(meeting_id)
        if self.fail_delete:
            raise self.fail_delete
        return True

    def get_meeting_recordings(self, meeting_id):
        if self.recordings_error:
            raise self.recordings_error
        return self.recordings.get(meeting_id, [])


@pytest.fixture
def fake_zoom():
    return FakeZoom()


@pytest.fixture
def app(fake_zoom):
    app = create_app(TestConfig, zoom_client=fake_zoom)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def parts(app):
    return components()


def make_user(name, email, role=Roles.USER, service=None):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        service_id=service.id if service else None,
    )
    user.roles.append(Role.query.filter_by(name=role).first())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def service(app):
    svc = Service(name="Tax Advice", service_fee=10, consultation_fee=40, duration=30)
    db.session.add(svc)
    db.session.commit()
    return svc


@pytest.fixture
def customer(app):
    return make_user("Asha Customer", "asha@example.com")


@pytest.fixture
def provider(app, service):
    return make_user("Ravi Provider", "ravi@example.com", Roles.SUB_ADMIN, service)


@pytest.fixture
def super_admin(app):
    return make_user("Root Admin", "root@example.com", Roles.SUPER_ADMIN)


@pytest.fixture
def booking_fields(customer, provider, service):
    def build(**overrides):
        fields = {
            "user_id": customer.id,
            "sub_admin_id": provider.id,
            "service_id": service.id,
            "date": SLOT_START.isoformat() + "Z",
            "timeslot": {
                "start": SLOT_START.isoformat() + "Z",
                "end": (SLOT_START + timedelta(minutes=30)).isoformat() + "Z",
            },
            "amount": 50,
        }
        fields.update(overrides)
        return fields
    return build


def login(app, user):
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def provider_client(app, provider):
    return login(app, provider)


@pytest.fixture
def admin_client(app, super_admin):
    return login(app, super_admin)


@pytest.fixture
def customer_client(app, customer):
    return login(app, customer)


def not_found():
    return ProviderApiError("Zoom API error: Meeting does not exist", status=404,
                            upstream_message="Meeting does not exist")
