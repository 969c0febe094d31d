from unittest.mock import MagicMock

from models.zoom_session import ZoomSession
from services.notifications import Notifier
from utils.errors import ConflictError


def test_register_and_list_sessions(provider_client, admin_client, parts, booking_fields):
    booking = parts.bookings.create(booking_fields())

    resp = provider_client.post("/api/zoom-sessions", json={
        "bookingId": booking.id,
        "meetingId": "85033334444",
        "joinUrl": "https://zoom.test/j/85033334444",
        "startTime": "2026-11-02T15:00:00Z",
        "endTime": "2026-11-02T15:30:00Z",
    })
    assert resp.status_code == 201
    session_id = resp.get_json()["zoomSession"]["id"]

    again = provider_client.post("/api/zoom-sessions", json={
        "bookingId": booking.id,
        "meetingId": "85055556666",
        "joinUrl": "https://zoom.test/j/85055556666",
        "startTime": "2026-11-02T15:00:00Z",
    })
    assert again.status_code == 409

    listing = provider_client.get(f"/api/zoom-sessions?bookingId={booking.id}").get_json()
    assert listing["pagination"]["totalZoomSessions"] == 1
    assert provider_client.get("/api/zoom-sessions?bookingId=abc").status_code == 400

    assert provider_client.get(f"/api/zoom-sessions/{session_id}").get_json()["zoomSession"]["meetingId"] == "85033334444"
    assert provider_client.delete(f"/api/zoom-sessions/{session_id}").status_code == 403
    assert admin_client.delete(f"/api/zoom-sessions/{session_id}").status_code == 200
    assert ZoomSession.query.count() == 0


def test_concurrent_session_creation_discards_extra_meeting(parts, fake_zoom, booking_fields, monkeypatch):
    booking = parts.bookings.create(booking_fields(payment_status="success"))
    winner = parts.sessions.create(booking.id, "85077778888", "https://zoom.test/j/85077778888",
                                   booking.timeslot_start)

    # simulate losing the race: the existence check ran before the winner committed
    monkeypatch.setattr(parts.sessions, "create", MagicMock(side_effect=ConflictError("exists")))
    warnings = []
    session = parts.orchestrator._schedule_meeting(booking, "none", warnings)

    assert session.id == winner.id
    assert fake_zoom.deleted == [fake_zoom.created[0]["id"]]


def test_notifier_runs_on_background_pool(app, monkeypatch):
    sent = []
    monkeypatch.setattr("services.notifications.send_email",
                        lambda to, subject, body, html=None: sent.append(to) or (False, "smtp down"))
    app.config["NOTIFY_INLINE"] = False
    notifier = Notifier(app)
    try:
        future = notifier.dispatch([("a@example.com", "s", "t", None)], "test")
        future.result(timeout=5)
    finally:
        notifier.shutdown()
    assert sent == ["a@example.com"]
