import logging
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import Blueprint, request, jsonify, g, current_app

from models import db
from models.enums import PaymentMethod, PaymentStatus, Roles
from models.payment import Payment
from security.rbac import require_roles
from services import components
from services.payments import apply_payment_status
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ValidationError, ConflictError

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    return urlunparse(parts._replace(query=urlencode(query)))


def _booking_id_from(data):
    booking_id = data.get("bookingId")
    if isinstance(booking_id, bool) or not isinstance(booking_id, int):
        raise ValidationError("Invalid bookingId format")
    return booking_id


# Offline payments (bank transfer, cash, third-party gateways) recorded by staff
@payments_bp.post("")
@require_roles(Roles.SUB_ADMIN)
def record_payment():
    data = request.get_json(silent=True) or {}
    booking = components().bookings.get(_booking_id_from(data))

    method = data.get("paymentMethod") or PaymentMethod.OTHER
    if method not in PaymentMethod.ALL:
        raise ValidationError(f"Invalid paymentMethod. Must be one of: {', '.join(PaymentMethod.ALL)}")
    status = data.get("status") or PaymentStatus.SUCCESS
    if status not in PaymentStatus.ALL:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(PaymentStatus.ALL)}")

    amount = data.get("amount", booking.amount)
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
        raise ValidationError("amount must be a non-negative number")

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=amount,
        payment_method=method,
        transaction_id=(data.get("transactionId") or None),
        status=PaymentStatus.PENDING,
    )
    # stored together with the booking update inside apply_payment_status
    db.session.add(payment)

    result = apply_payment_status(components().orchestrator, payment, status, actor_id=g.user.id)
    log_event("PAYMENT_RECORDED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"booking_id": booking.id, "status": status, "method": method})

    out = {"success": True, "message": "Payment recorded successfully", "payment": payment.to_dict()}
    if result is not None:
        out["warnings"] = result.warnings
    return jsonify(out), 201


@payments_bp.post("/checkout")
@login_required
def start_checkout():
    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe.api_key:
        return jsonify(success=False, message="Stripe secret key not configured"), 500

    success_url = current_app.config.get("STRIPE_SUCCESS_URL")
    cancel_url = current_app.config.get("STRIPE_CANCEL_URL")
    if not success_url or not cancel_url:
        return jsonify(success=False, message="Stripe success/cancel URLs not configured"), 500

    data = request.get_json(silent=True) or {}
    booking = components().bookings.get(_booking_id_from(data))
    if booking.user_id != g.user.id:
        return jsonify(success=False, message="Booking not found"), 404
    if booking.payment_status == PaymentStatus.SUCCESS:
        raise ConflictError("Booking already paid")

    payment = Payment(
        booking_id=booking.id,
        user_id=g.user.id,
        amount=booking.amount,
        payment_method=PaymentMethod.STRIPE,
        status=PaymentStatus.PENDING,
    )
    db.session.add(payment)
    db.session.commit()

    currency = current_app.config.get("STRIPE_CURRENCY", "usd")
    service_name = booking.service.name if booking.service else "Consultation"
    session = stripe.checkout.Session.create(
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": currency,
                "product_data": {"name": f"{service_name} consultation (Booking #{booking.id})"},
                "unit_amount": int(round(booking.amount * 100)),
            },
            "quantity": 1,
        }],
        success_url=success_url,
        cancel_url=_append_query(cancel_url, {"booking_id": str(booking.id), "payment_id": str(payment.id)}),
        metadata={
            "booking_id": str(booking.id),
            "payment_id": str(payment.id),
            "user_id": str(g.user.id),
        },
    )

    payment.stripe_session_id = session["id"]
    db.session.commit()

    log_event("PAYMENT_SESSION_CREATED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"stripe_session_id": session["id"], "booking_id": booking.id})
    return jsonify(success=True, checkoutUrl=session["url"], paymentId=payment.id), 200


@payments_bp.get("")
@login_required
def list_payments():
    booking_id = request.args.get("bookingId", type=int)
    q = Payment.query
    if booking_id is not None:
        q = q.filter_by(booking_id=booking_id)
    roles = g.user.role_names
    if Roles.SUPER_ADMIN not in roles and Roles.SUB_ADMIN not in roles:
        q = q.filter_by(user_id=g.user.id)
    rows = q.order_by(Payment.created_at.desc()).all()
    return jsonify(success=True, payments=[p.to_dict() for p in rows]), 200
