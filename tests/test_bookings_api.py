from datetime import datetime, timedelta

from models import db
from models.audit_log import AuditLog
from models.booking import Booking
from models.zoom_session import ZoomSession
from tests.conftest import SLOT_START, not_found
from utils.errors import AuthConfigError, ProviderApiError


def booking_body(customer, provider, service, **overrides):
    body = {
        "userId": customer.id,
        "subAdminId": provider.id,
        "serviceId": service.id,
        "date": "2026-11-02T00:00:00Z",
        "timeslot": {"start": "2026-11-02T15:00:00Z", "end": "2026-11-02T15:30:00Z"},
        "amount": 50,
    }
    body.update(overrides)
    return body


def test_create_unpaid_booking_schedules_meeting_without_link(provider_client, fake_zoom, customer, provider, service):
    resp = provider_client.post("/api/bookings", json=booking_body(customer, provider, service))
    assert resp.status_code == 201
    data = resp.get_json()

    assert data["booking"]["paymentStatus"] == "pending"
    assert data["booking"]["zoomLink"] is None
    assert data["warnings"] == []
    assert data["zoomSession"]["status"] == "scheduled"
    assert data["zoomSession"]["meetingId"] == fake_zoom.created[0]["id"]

    created = fake_zoom.created[0]
    assert created["topic"] == "Tax Advice - Asha Customer & Ravi Provider"
    assert created["duration"] == 30
    assert created["auto_recording"] == "cloud"
    assert created["agenda"] == "Consultation session for Tax Advice service"


def test_payment_success_unlocks_link(provider_client, customer, provider, service):
    created = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()
    booking_id = created["booking"]["id"]

    resp = provider_client.put(f"/api/bookings/{booking_id}", json={"paymentStatus": "success"})
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["zoomLink"] == created["zoomSession"]["joinUrl"]


def test_create_paid_booking_sets_link_and_notifies(provider_client, fake_zoom, monkeypatch, customer, provider, service):
    sent = []
    monkeypatch.setattr("services.notifications.send_email",
                        lambda to, subject, body, html=None: sent.append((to, subject)) or (True, None))

    resp = provider_client.post("/api/bookings", json=booking_body(customer, provider, service, paymentStatus="success"))
    data = resp.get_json()

    assert data["booking"]["zoomLink"] == data["zoomSession"]["joinUrl"]
    assert sorted(sent) == [
        ("asha@example.com", "Booking Confirmation - Tax Advice"),
        ("ravi@example.com", "New Booking Assigned - Tax Advice"),
    ]


def test_unpaid_booking_sends_no_link(provider_client, monkeypatch, customer, provider, service):
    sent = []
    monkeypatch.setattr("services.notifications.send_email",
                        lambda to, subject, body, html=None: sent.append(to) or (True, None))
    provider_client.post("/api/bookings", json=booking_body(customer, provider, service))
    assert sent == []


def test_zoom_link_before_payment_is_rejected(provider_client, fake_zoom, customer, provider, service):
    resp = provider_client.post("/api/bookings", json=booking_body(
        customer, provider, service, zoomLink="https://zoom.test/j/1"))
    assert resp.status_code == 400
    assert resp.get_json() == {
        "success": False,
        "message": "Cannot set zoomLink before payment is successful",
        "error": "InvariantViolation",
    }
    assert Booking.query.count() == 0
    assert fake_zoom.created == []


def test_provider_failure_keeps_booking_and_warns(provider_client, fake_zoom, customer, provider, service):
    fake_zoom.fail_create = ProviderApiError("Zoom API error: Invalid access token.", status=401)

    resp = provider_client.post("/api/bookings", json=booking_body(customer, provider, service, paymentStatus="success"))
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["booking"]["zoomLink"] is None
    assert "zoomSession" not in data
    assert data["warnings"] == ["Zoom meeting could not be created: Zoom API error: Invalid access token."]
    assert AuditLog.query.filter_by(action="ZOOM_MEETING_CREATE_FAILED").count() == 1


def test_missing_credentials_degrade_like_provider_failure(provider_client, fake_zoom, customer, provider, service):
    fake_zoom.fail_create = AuthConfigError("Zoom credentials are missing: ZOOM_ACCOUNT_ID")
    resp = provider_client.post("/api/bookings", json=booking_body(customer, provider, service))
    assert resp.status_code == 201
    assert ZoomSession.query.count() == 0


def test_short_timeslot_skips_meeting(provider_client, fake_zoom, customer, provider, service):
    resp = provider_client.post("/api/bookings", json=booking_body(
        customer, provider, service,
        timeslot={"start": "2026-11-02T15:00:00Z", "end": "2026-11-02T15:00:20Z"},
    ))
    assert resp.status_code == 201
    assert fake_zoom.created == []
    assert resp.get_json()["warnings"]


def test_duration_rounds_half_minutes_up(provider_client, fake_zoom, customer, provider, service):
    provider_client.post("/api/bookings", json=booking_body(
        customer, provider, service,
        timeslot={"start": "2026-11-02T15:00:00Z", "end": "2026-11-02T15:00:30Z"},
    ))
    assert fake_zoom.created[0]["duration"] == 1


def test_paying_booking_without_session_backfills_meeting(provider_client, fake_zoom, customer, provider, service):
    fake_zoom.fail_create = ProviderApiError("Zoom API error: down", status=503)
    booking_id = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()["booking"]["id"]
    fake_zoom.fail_create = None

    data = provider_client.put(f"/api/bookings/{booking_id}", json={"paymentStatus": "success"}).get_json()

    assert fake_zoom.created[-1]["auto_recording"] == "none"
    assert data["booking"]["zoomLink"] == data["zoomSession"]["joinUrl"]


def test_timeslot_change_reschedules_meeting(provider_client, fake_zoom, customer, provider, service):
    created = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()
    booking_id = created["booking"]["id"]

    resp = provider_client.put(f"/api/bookings/{booking_id}", json={
        "timeslot": {"start": "2026-11-03T10:00:00Z", "end": "2026-11-03T11:00:00Z"},
    })
    assert resp.status_code == 200
    meeting_id, fields = fake_zoom.updated[0]
    assert meeting_id == created["zoomSession"]["meetingId"]
    assert fields == {"start_time": "2026-11-03T10:00:00Z", "duration": 60}
    assert ZoomSession.query.one().start_time == datetime(2026, 11, 3, 10, 0)


def test_reschedule_failure_is_a_warning(provider_client, fake_zoom, customer, provider, service):
    booking_id = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()["booking"]["id"]
    fake_zoom.fail_update = ProviderApiError("Zoom API error: boom", status=500)

    resp = provider_client.put(f"/api/bookings/{booking_id}", json={
        "timeslot": {"start": "2026-11-03T10:00:00Z", "end": "2026-11-03T11:00:00Z"},
    })
    assert resp.status_code == 200
    assert resp.get_json()["warnings"] == ["Zoom meeting could not be updated: Zoom API error: boom"]
    assert ZoomSession.query.one().start_time == SLOT_START


def test_delete_booking_tolerates_missing_meeting(admin_client, provider_client, fake_zoom, customer, provider, service):
    created = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()
    booking_id = created["booking"]["id"]
    fake_zoom.fail_delete = not_found()

    resp = admin_client.delete(f"/api/bookings/{booking_id}")
    assert resp.status_code == 200
    assert resp.get_json()["deletedBooking"]["id"] == booking_id
    assert fake_zoom.deleted == [created["zoomSession"]["meetingId"]]
    assert ZoomSession.query.count() == 0
    assert Booking.query.count() == 0


def test_delete_requires_super_admin(provider_client, customer, provider, service):
    booking_id = provider_client.post("/api/bookings", json=booking_body(customer, provider, service)).get_json()["booking"]["id"]
    assert provider_client.delete(f"/api/bookings/{booking_id}").status_code == 403


def test_customers_cannot_create_bookings(customer_client, customer, provider, service):
    resp = customer_client.post("/api/bookings", json=booking_body(customer, provider, service))
    assert resp.status_code == 403


def test_anonymous_requests_are_rejected(app):
    assert app.test_client().get("/api/bookings").status_code == 401


def test_list_and_get(provider_client, customer, provider, service):
    for _ in range(3):
        provider_client.post("/api/bookings", json=booking_body(customer, provider, service))

    data = provider_client.get("/api/bookings?limit=2&page=2").get_json()
    assert data["pagination"] == {"currentPage": 2, "totalPages": 2, "totalBookings": 3, "limit": 2}
    assert len(data["bookings"]) == 1

    booking_id = data["bookings"][0]["id"]
    detail = provider_client.get(f"/api/bookings/{booking_id}").get_json()["booking"]
    assert detail["user"]["email"] == "asha@example.com"
    assert detail["service"]["name"] == "Tax Advice"

    assert provider_client.get("/api/bookings/9999").status_code == 404
    assert provider_client.get("/api/bookings?page=zero").status_code == 400


def test_validation_errors_use_common_shape(provider_client, customer, provider, service):
    body = booking_body(customer, provider, service)
    del body["timeslot"]
    resp = provider_client.post("/api/bookings", json=body)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "ValidationError"


def test_booking_end_time_is_derived_from_timeslot(parts, booking_fields):
    booking = parts.bookings.create(booking_fields(timeslot={
        "start": SLOT_START.isoformat(),
        "end": (SLOT_START + timedelta(minutes=45)).isoformat(),
    }))
    db.session.expire_all()
    assert parts.bookings.get(booking.id).timeslot_end == datetime(2026, 11, 2, 15, 45)
