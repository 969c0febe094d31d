"""
Zoom webhook verification and session reconciliation.

Zoom signs each delivery as HMAC-SHA256(secret, "v0:<timestamp>:<raw body>")
and sends it as "v0=<hex>". The one-time endpoint validation sends a
plainToken that has to be echoed back with its HMAC.

Handlers are single-pass and tolerant: events for meetings we do not
track, or for sessions that are already completed, are no-ops.
"""
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from services.zoom import ZoomClient
from stores.sessions import SessionStore
from utils.errors import DomainError

logger = logging.getLogger(__name__)

URL_VALIDATION_EVENT = "endpoint.url_validation"
PRIMARY_RECORDING_TYPES = ("MP4", "M4A")

EVENT_ALIASES = {
    "meeting.started": "session.started",
    "meeting.ended": "session.ended",
}


def sign_plain_token(plain_token: str, secret: str) -> str:
    return hmac.new((secret or "").encode("utf-8"), plain_token.encode("utf-8"), hashlib.sha256).hexdigest()


def expected_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    message = b"v0:" + timestamp.encode("utf-8") + b":" + raw_body
    return "v0=" + hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, signature: str, timestamp: str, raw_body: bytes) -> bool:
    if not signature or not timestamp:
        return False
    return hmac.compare_digest(signature.encode("utf-8"), expected_signature(secret, timestamp, raw_body).encode("utf-8"))


def pick_recording_url(files) -> Optional[str]:
    """First MP4/M4A file, else the first file; play_url preferred over download_url."""
    if not files:
        return None
    chosen = next(
        (f for f in files if isinstance(f, dict) and f.get("file_type") in PRIMARY_RECORDING_TYPES),
        files[0],
    )
    if not isinstance(chosen, dict):
        return None
    return chosen.get("play_url") or chosen.get("download_url") or None


def meeting_id_from(payload) -> Optional[str]:
    obj = (payload or {}).get("object") if isinstance(payload, dict) else None
    if not isinstance(obj, dict) or obj.get("id") in (None, ""):
        return None
    return str(obj["id"])


class WebhookReconciler:
    def __init__(self, sessions: SessionStore, zoom: ZoomClient):
        self.sessions = sessions
        self.zoom = zoom
        self._handlers = {
            "session.started": self.on_session_started,
            "session.ended": self.on_session_ended,
            "recording.completed": self.on_recording_completed,
        }

    def dispatch(self, event: str, payload) -> bool:
        """Runs the handler for event; returns False for events we ignore."""
        handler = self._handlers.get(EVENT_ALIASES.get(event, event))
        if handler is None:
            logger.info("Unhandled Zoom webhook event: %s", event)
            return False
        handler(payload)
        return True

    def on_session_started(self, payload):
        meeting_id = meeting_id_from(payload)
        if not meeting_id:
            logger.error("Missing meeting ID in session.started event")
            return
        logger.info("Meeting started: %s", meeting_id)
        self.sessions.mark_ongoing(meeting_id)

    def on_session_ended(self, payload, now: datetime = None):
        meeting_id = meeting_id_from(payload)
        if not meeting_id:
            logger.error("Missing meeting ID in session.ended event")
            return
        logger.info("Meeting ended: %s", meeting_id)
        self.sessions.record_end(meeting_id, now or datetime.now(timezone.utc).replace(tzinfo=None))

    def on_recording_completed(self, payload):
        meeting_id = meeting_id_from(payload)
        if not meeting_id:
            logger.error("Missing meeting ID in recording.completed event")
            return

        session = self.sessions.find_by_meeting_id(meeting_id)
        if not session:
            logger.warning("No ZoomSession found for meeting ID %s. Recording URL will not be saved.", meeting_id)
            return

        recording_url = None
        lookup_failed = False
        try:
            files = self.zoom.get_meeting_recordings(meeting_id)
            recording_url = pick_recording_url(files)
            if not files:
                logger.warning("No recording files found for meeting %s", meeting_id)
        except DomainError as exc:
            lookup_failed = True
            logger.error("Error fetching recordings for meeting %s: %s", meeting_id, exc.message)

        # an empty-but-successful lookup does not fall back to the payload copy
        if lookup_failed:
            embedded = payload["object"].get("recording_files")
            if isinstance(embedded, list):
                recording_url = pick_recording_url(embedded)
                if recording_url:
                    logger.info("Using recording URL from webhook payload for meeting %s", meeting_id)

        if not recording_url:
            logger.warning("Session for meeting %s marked completed without a recording URL", meeting_id)
        self.sessions.complete(meeting_id, recording_url)
