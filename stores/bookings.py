"""
Booking persistence.

Every write goes through BookingStore so the link-gating rule holds on
create and on every update: a booking may carry a zoom_link only while
its payment_status is "success".
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.enums import PaymentStatus, BookingStatus, Roles
from models.payment import Payment
from models.service import Service
from models.user import User
from utils.errors import ValidationError, InvariantViolation, NotFoundError, ConflictError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("user_id", "sub_admin_id", "service_id", "date", "timeslot", "amount")
FILTER_FIELDS = ("payment_status", "booking_status", "user_id", "sub_admin_id", "service_id")


def parse_instant(value, field_name: str) -> datetime:
    """ISO 8601 string or datetime -> naive UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"Invalid {field_name} format")
    else:
        raise ValidationError(f"Invalid {field_name} format")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _parse_id(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name} format")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name} format")
    if parsed < 1:
        raise ValidationError(f"Invalid {field_name} format")
    return parsed


def _parse_timeslot(value):
    if not isinstance(value, dict) or not value.get("start") or not value.get("end"):
        raise ValidationError("timeslot must have both start and end properties")
    return parse_instant(value["start"], "timeslot.start"), parse_instant(value["end"], "timeslot.end")


def _parse_amount(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError("amount must be a positive number")
    return float(value)


def _check_enum(value, allowed, field_name: str):
    if value not in allowed:
        raise ValidationError(f"Invalid {field_name}. Must be one of: {', '.join(allowed)}")
    return value


def _optional_link(value):
    # None / "" clears the field
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("link fields must be strings")
    return value.strip() or None


def check_link_gate(payment_status: str, zoom_link) -> None:
    if zoom_link and payment_status != PaymentStatus.SUCCESS:
        raise InvariantViolation("Cannot set zoomLink before payment is successful")


class BookingStore:
    """Booking CRUD with field validation and the payment gate on every write path."""

    def _require_user(self, user_id: int, label: str) -> User:
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError(f"{label} not found")
        return user

    def _require_service(self, service_id: int) -> Service:
        service = db.session.get(Service, service_id)
        if not service:
            raise NotFoundError("Service not found")
        return service

    def _clean(self, fields: dict) -> dict:
        """Validates whichever known fields are present and returns typed values."""
        clean = {}
        for key in ("user_id", "sub_admin_id", "service_id"):
            if key in fields:
                clean[key] = _parse_id(fields[key], key)
        if "date" in fields:
            clean["date"] = parse_instant(fields["date"], "date")
        if "timeslot" in fields:
            clean["timeslot_start"], clean["timeslot_end"] = _parse_timeslot(fields["timeslot"])
        if "amount" in fields:
            clean["amount"] = _parse_amount(fields["amount"])
        if fields.get("payment_status") is not None:
            clean["payment_status"] = _check_enum(fields["payment_status"], PaymentStatus.ALL, "paymentStatus")
        if fields.get("booking_status") is not None:
            clean["booking_status"] = _check_enum(fields["booking_status"], BookingStatus.ALL, "bookingStatus")
        for key in ("zoom_link", "zoom_recording_link"):
            if key in fields:
                clean[key] = _optional_link(fields[key])
        return clean

    def _check_refs(self, clean: dict) -> None:
        if "user_id" in clean:
            self._require_user(clean["user_id"], "User")
        if "sub_admin_id" in clean:
            sub_admin = self._require_user(clean["sub_admin_id"], "Sub-admin")
            if not sub_admin.role_names.intersection({Roles.SUB_ADMIN, Roles.SUPER_ADMIN}):
                raise ValidationError("subAdminId must reference a sub-admin")
        if "service_id" in clean:
            self._require_service(clean["service_id"])

    def _commit(self):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Booking write rejected by constraint: %s", exc.orig)
            raise ConflictError("Booking conflicts with an existing record")

    # ---------- writes ----------

    def create(self, fields: dict) -> Booking:
        missing = [k for k in REQUIRED_FIELDS if fields.get(k) is None]
        if missing:
            raise ValidationError(
                "userId, subAdminId, serviceId, date, timeslot, and amount are required fields"
            )

        clean = self._clean(fields)
        clean.setdefault("payment_status", PaymentStatus.PENDING)
        clean.setdefault("booking_status", BookingStatus.SCHEDULED)
        check_link_gate(clean["payment_status"], clean.get("zoom_link"))
        self._check_refs(clean)

        booking = Booking(**clean)
        db.session.add(booking)
        self._commit()
        return booking

    def update(self, booking_id: int, fields: dict) -> Booking:
        booking = self.get(booking_id)
        clean = self._clean(fields)

        resulting_status = clean.get("payment_status", booking.payment_status)
        resulting_link = clean["zoom_link"] if "zoom_link" in clean else booking.zoom_link
        check_link_gate(resulting_status, resulting_link)
        self._check_refs(clean)

        for key, value in clean.items():
            setattr(booking, key, value)
        self._commit()
        return booking

    def set_link(self, booking_id: int, join_url: str) -> Booking:
        return self.update(booking_id, {"zoom_link": join_url})

    def apply_session_completion(self, booking_id: int, recording_url):
        """Mirror a completed session onto its booking. Caller commits."""
        booking = db.session.get(Booking, booking_id)
        if not booking:
            logger.warning("Completed session points at missing booking %s", booking_id)
            return None
        booking.booking_status = BookingStatus.COMPLETED
        booking.zoom_recording_link = recording_url
        return booking

    def delete(self, booking_id: int) -> Booking:
        booking = self.get(booking_id)
        # payments outlive the booking for bookkeeping
        Payment.query.filter_by(booking_id=booking.id).update({"booking_id": None})
        db.session.delete(booking)
        self._commit()
        return booking

    # ---------- reads ----------

    def find_by_id(self, booking_id):
        try:
            booking_id = int(booking_id)
        except (TypeError, ValueError):
            return None
        return db.session.get(Booking, booking_id)

    def get(self, booking_id) -> Booking:
        booking = self.find_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def list(self, filters: dict, page: int = 1, limit: int = 10):
        """Returns (bookings, total) newest first. Unknown status values are ignored."""
        q = Booking.query
        for key in FILTER_FIELDS:
            value = filters.get(key)
            if value is None or value == "":
                continue
            if key == "payment_status":
                if value in PaymentStatus.ALL:
                    q = q.filter(Booking.payment_status == value)
            elif key == "booking_status":
                if value in BookingStatus.ALL:
                    q = q.filter(Booking.booking_status == value)
            else:
                q = q.filter(getattr(Booking, key) == _parse_id(value, key))

        total = q.count()
        rows = (
            q.order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total
