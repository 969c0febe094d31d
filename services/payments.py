import logging
from datetime import datetime, timezone

from models import db
from models.booking import Booking
from models.enums import PaymentStatus
from models.payment import Payment

logger = logging.getLogger(__name__)

# a failed or abandoned attempt never undoes a booking that is already paid
NON_SETTLING = (PaymentStatus.PENDING, PaymentStatus.FAILED)


def booking_status_after(booking: Booking, status: str):
    """Payment status the booking should take after a payment write, or None to leave it."""
    if booking.payment_status == PaymentStatus.SUCCESS and status in NON_SETTLING:
        return None
    if booking.payment_status == status:
        return None
    return status


def apply_payment_status(orchestrator, payment: Payment, status: str, actor_id=None):
    """Write a payment status and carry it onto the booking through the orchestrator,
    so a successful payment unlocks (or backfills) the join link.

    The payment row is committed together with the booking write; if the
    booking update is rejected neither change is stored.
    """
    if payment.status != status and status == PaymentStatus.SUCCESS:
        payment.paid_at = datetime.now(timezone.utc).replace(tzinfo=None)
    payment.status = status

    booking = db.session.get(Booking, payment.booking_id) if payment.booking_id else None
    if booking is None:
        if payment.booking_id:
            logger.warning("Payment %s points at missing booking %s", payment.id, payment.booking_id)
        db.session.commit()
        return None

    target = booking_status_after(booking, status)
    if target is None:
        logger.info("Payment %s is %s; booking %s stays %s", payment.id, status, booking.id, booking.payment_status)
        db.session.commit()
        return None

    fields = {"payment_status": target}
    if target != PaymentStatus.SUCCESS and booking.zoom_link:
        # the join link only stays while the booking is paid
        fields["zoom_link"] = None
    return orchestrator.update_booking(booking.id, fields, actor_id=actor_id)
