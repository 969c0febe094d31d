import json
import logging

from flask import Blueprint, request, jsonify, current_app

from models import db
from services import components
from services.zoom_webhooks import URL_VALIDATION_EVENT, sign_plain_token, verify_signature
from utils.audit import log_event

logger = logging.getLogger(__name__)

zoom_webhook_bp = Blueprint("zoom_webhook", __name__, url_prefix="/api/zoom")


def _url_validation(payload, secret):
    plain_token = payload.get("plainToken") if isinstance(payload, dict) else None
    if not plain_token or not isinstance(plain_token, str):
        return jsonify(success=False, message="Missing plainToken in verification request"), 400
    if not secret:
        logger.warning("ZOOM_WEBHOOK_SECRET_TOKEN not set; answering URL validation with an empty key")
    logger.info("Zoom webhook URL validation answered")
    return jsonify(plainToken=plain_token, encryptedToken=sign_plain_token(plain_token, secret)), 200


# Public: Zoom calls this for URL validation and for meeting lifecycle events
@zoom_webhook_bp.post("/webhook")
def zoom_webhook():
    raw_body = request.get_data()
    try:
        body = json.loads(raw_body)
    except ValueError:
        body = None
    if not isinstance(body, dict) or not isinstance(body.get("event"), str):
        return jsonify(success=False, message="Malformed webhook body"), 400

    event = body["event"]
    payload = body.get("payload") or {}
    secret = current_app.config.get("ZOOM_WEBHOOK_SECRET_TOKEN")

    if event == URL_VALIDATION_EVENT:
        return _url_validation(payload, secret)

    signature = request.headers.get(current_app.config.get("ZOOM_SIGNATURE_HEADER", "x-zm-signature"))
    timestamp = request.headers.get(current_app.config.get("ZOOM_TIMESTAMP_HEADER", "x-zm-request-timestamp"))
    if not secret:
        logger.warning("ZOOM_WEBHOOK_SECRET_TOKEN not set. Webhook verification disabled.")
    elif signature and timestamp and not verify_signature(secret, signature, timestamp, raw_body):
        logger.error("Invalid Zoom webhook signature for event %s", event)
        return jsonify(success=False, message="Invalid webhook signature"), 401

    logger.info("Received Zoom webhook event: %s", event)

    # always 200 from here on so Zoom does not retry
    try:
        handled = components().reconciler.dispatch(event, payload)
        if handled:
            log_event(
                "ZOOM_WEBHOOK_" + event.upper().replace(".", "_"),
                entity="zoom_meeting",
                entity_id=(payload.get("object") or {}).get("id") if isinstance(payload, dict) else None,
                source="webhook",
            )
    except Exception as exc:
        db.session.rollback()
        logger.exception("Error processing Zoom webhook event %s", event)
        return jsonify(success=False, message="Error processing webhook", error=str(exc)), 200

    return jsonify(success=True, message="Webhook received and processed"), 200
