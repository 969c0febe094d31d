import json
from datetime import datetime

import pytest

from models import db
from models.audit_log import AuditLog
from models.enums import BookingStatus, SessionStatus
from models.zoom_session import ZoomSession
from services.zoom_webhooks import expected_signature, pick_recording_url, sign_plain_token, verify_signature
from utils.errors import ProviderApiError

SECRET = "whsec-test"
TIMESTAMP = "1700000000"
REFERENCE_BODY = b'{"event":"recording.completed","payload":{"object":{"id":"85011112222"}}}'
START = datetime(2026, 11, 2, 15, 0)


def post_event(client, body, secret=SECRET, signature=None):
    raw = json.dumps(body).encode("utf-8")
    headers = {
        "x-zm-request-timestamp": TIMESTAMP,
        "x-zm-signature": signature or expected_signature(secret, TIMESTAMP, raw),
    }
    return client.post("/api/zoom/webhook", data=raw, content_type="application/json", headers=headers)


@pytest.fixture
def tracked(parts, booking_fields):
    booking = parts.bookings.create(booking_fields(payment_status="success"))
    session = parts.sessions.create(booking.id, "85011112222", "https://zoom.test/j/85011112222", START)
    return booking, session


# ---------- signing ----------

def test_signature_matches_reference_value():
    assert expected_signature(SECRET, TIMESTAMP, REFERENCE_BODY) == (
        "v0=2d744095e3d747ca29752f4428839f0b49aeed799d42d950213b89a30fcf6f8b"
    )


def test_single_byte_mutation_fails_verification():
    signature = expected_signature(SECRET, TIMESTAMP, REFERENCE_BODY)
    assert verify_signature(SECRET, signature, TIMESTAMP, REFERENCE_BODY)

    mutated = REFERENCE_BODY.replace(b"85011112222", b"85011112223")
    assert not verify_signature(SECRET, signature, TIMESTAMP, mutated)
    assert not verify_signature(SECRET, signature, "1700000001", REFERENCE_BODY)


def test_plain_token_signature_reference_value():
    assert sign_plain_token("plain-abc", SECRET) == "3fa323348765e23745642139b98b7ca5eaf176d8ae7f18175c7c017621c66725"


def test_pick_recording_url_prefers_primary_files():
    files = [
        {"file_type": "CHAT", "download_url": "https://x/chat"},
        {"file_type": "M4A", "download_url": "https://x/audio"},
        {"file_type": "MP4", "play_url": "https://x/video"},
    ]
    assert pick_recording_url(files) == "https://x/audio"
    assert pick_recording_url([{"file_type": "CHAT", "download_url": "https://x/chat"}]) == "https://x/chat"
    assert pick_recording_url([]) is None


# ---------- endpoint ----------

def test_url_validation_handshake(app):
    client = app.test_client()
    resp = client.post("/api/zoom/webhook", json={
        "event": "endpoint.url_validation",
        "payload": {"plainToken": "plain-abc"},
    })
    assert resp.status_code == 200
    assert resp.get_json() == {
        "plainToken": "plain-abc",
        "encryptedToken": "3fa323348765e23745642139b98b7ca5eaf176d8ae7f18175c7c017621c66725",
    }


def test_url_validation_without_token_is_400(app):
    resp = app.test_client().post("/api/zoom/webhook", json={"event": "endpoint.url_validation", "payload": {}})
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_malformed_body_is_400(app):
    client = app.test_client()
    resp = client.post("/api/zoom/webhook", data=b"not json", content_type="application/json")
    assert resp.status_code == 400
    resp = client.post("/api/zoom/webhook", json={"payload": {}})
    assert resp.status_code == 400


def test_bad_signature_is_401(app, tracked):
    resp = post_event(app.test_client(), {
        "event": "session.started",
        "payload": {"object": {"id": "85011112222"}},
    }, signature="v0=deadbeef")
    assert resp.status_code == 401
    assert tracked[1].status == SessionStatus.SCHEDULED


def test_session_started_marks_ongoing(app, tracked):
    resp = post_event(app.test_client(), {
        "event": "meeting.started",
        "payload": {"object": {"id": "85011112222"}},
    })
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "message": "Webhook received and processed"}

    db.session.expire_all()
    assert db.session.get(ZoomSession, tracked[1].id).status == SessionStatus.ONGOING
    assert AuditLog.query.filter_by(action="ZOOM_WEBHOOK_MEETING_STARTED", source="webhook").count() == 1


def test_session_ended_records_end_time(app, tracked):
    post_event(app.test_client(), {"event": "session.ended", "payload": {"object": {"id": "85011112222"}}})
    db.session.expire_all()
    session = db.session.get(ZoomSession, tracked[1].id)
    assert session.end_time is not None
    assert session.status == SessionStatus.SCHEDULED


def test_recording_completed_completes_session_and_booking(app, fake_zoom, tracked):
    booking, session = tracked
    fake_zoom.recordings["85011112222"] = [{"file_type": "MP4", "play_url": "https://x/y"}]

    resp = post_event(app.test_client(), {
        "event": "recording.completed",
        "payload": {"object": {"id": 85011112222}},
    })
    assert resp.status_code == 200

    db.session.expire_all()
    session = db.session.get(ZoomSession, session.id)
    assert session.status == SessionStatus.COMPLETED
    assert session.recording_url == "https://x/y"
    booking = app.extensions["consultdesk"].bookings.get(booking.id)
    assert booking.booking_status == BookingStatus.COMPLETED
    assert booking.zoom_recording_link == "https://x/y"


def test_recording_for_untracked_meeting_writes_nothing(app, fake_zoom, tracked):
    fake_zoom.recordings["999"] = [{"file_type": "MP4", "play_url": "https://x/other"}]
    resp = post_event(app.test_client(), {"event": "recording.completed", "payload": {"object": {"id": "999"}}})

    assert resp.status_code == 200
    db.session.expire_all()
    assert ZoomSession.query.count() == 1
    assert db.session.get(ZoomSession, tracked[1].id).status == SessionStatus.SCHEDULED
    assert app.extensions["consultdesk"].bookings.get(tracked[0].id).zoom_recording_link is None


def test_recording_lookup_failure_falls_back_to_payload(app, fake_zoom, tracked):
    fake_zoom.recordings_error = ProviderApiError("Zoom API error: boom", status=500)
    post_event(app.test_client(), {
        "event": "recording.completed",
        "payload": {"object": {
            "id": "85011112222",
            "recording_files": [{"file_type": "MP4", "download_url": "https://x/from-payload"}],
        }},
    })
    db.session.expire_all()
    assert db.session.get(ZoomSession, tracked[1].id).recording_url == "https://x/from-payload"


def test_empty_lookup_does_not_use_payload_files(app, fake_zoom, tracked):
    post_event(app.test_client(), {
        "event": "recording.completed",
        "payload": {"object": {
            "id": "85011112222",
            "recording_files": [{"file_type": "MP4", "download_url": "https://x/from-payload"}],
        }},
    })
    db.session.expire_all()
    session = db.session.get(ZoomSession, tracked[1].id)
    assert session.status == SessionStatus.COMPLETED
    assert session.recording_url is None


def test_unknown_events_are_acknowledged(app, tracked):
    resp = post_event(app.test_client(), {"event": "meeting.participant_joined", "payload": {"object": {"id": "1"}}})
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True


def test_processing_errors_still_return_200(app, monkeypatch, tracked):
    def explode(meeting_id):
        raise RuntimeError("database went away")

    monkeypatch.setattr(app.extensions["consultdesk"].sessions, "mark_ongoing", explode)
    resp = post_event(app.test_client(), {"event": "session.started", "payload": {"object": {"id": "85011112222"}}})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"] == "Error processing webhook"
