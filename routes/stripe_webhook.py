import logging

import stripe
from flask import Blueprint, request, jsonify, current_app

from models import db
from models.enums import PaymentStatus
from models.payment import Payment
from services import components
from services.payments import apply_payment_status
from utils.audit import log_event

logger = logging.getLogger(__name__)

stripe_webhook_bp = Blueprint("stripe_webhook", __name__, url_prefix="/webhooks")

CHECKOUT_EVENTS = {
    "checkout.session.completed": PaymentStatus.SUCCESS,
    "checkout.session.expired": PaymentStatus.FAILED,
}


def _find_payment(session):
    meta = session.get("metadata") or {}
    payment = None
    payment_id = meta.get("payment_id")
    if payment_id and str(payment_id).isdigit():
        payment = db.session.get(Payment, int(payment_id))
    if not payment and session.get("id"):
        payment = Payment.query.filter_by(stripe_session_id=session["id"]).first()
    return payment


@stripe_webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not endpoint_secret:
        return jsonify(success=False, message="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(
            request.get_data(), request.headers.get("Stripe-Signature"), endpoint_secret
        )
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("Rejected Stripe webhook with an invalid payload or signature")
        return jsonify(success=False, message="Invalid webhook signature"), 400

    event_type = event["type"]
    status = CHECKOUT_EVENTS.get(event_type)
    if status is None:
        return jsonify(received=True), 200

    session = event["data"]["object"]
    payment = _find_payment(session)
    if not payment:
        logger.warning("Stripe %s for unknown checkout session %s", event_type, session.get("id"))
        return jsonify(received=True), 200

    if payment.status == PaymentStatus.SUCCESS:
        return jsonify(received=True), 200

    if status == PaymentStatus.SUCCESS:
        payment.transaction_id = session.get("payment_intent") or payment.transaction_id
    apply_payment_status(components().orchestrator, payment, status)
    log_event(
        "PAYMENT_PAID" if status == PaymentStatus.SUCCESS else "PAYMENT_EXPIRED",
        entity="payment",
        entity_id=payment.id,
        metadata={"stripe_session_id": session.get("id"), "booking_id": payment.booking_id},
        source="webhook",
    )
    return jsonify(received=True), 200
