from flask import Blueprint, request, jsonify, g

from models.enums import Roles
from security.rbac import require_roles
from services import components
from utils.auth_context import login_required
from utils.errors import ValidationError
from utils.pagination import page_args, pagination_meta

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")

# request body key -> BookingStore field
BODY_FIELDS = {
    "userId": "user_id",
    "subAdminId": "sub_admin_id",
    "serviceId": "service_id",
    "date": "date",
    "timeslot": "timeslot",
    "amount": "amount",
    "paymentStatus": "payment_status",
    "bookingStatus": "booking_status",
    "zoomLink": "zoom_link",
    "zoomRecordingLink": "zoom_recording_link",
}


def _body_fields():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return {field: data[key] for key, field in BODY_FIELDS.items() if key in data}


def _result_json(result, message):
    out = {
        "success": True,
        "message": message,
        "booking": result.booking.to_dict(expand=True),
        "warnings": result.warnings,
    }
    if result.session:
        out["zoomSession"] = {
            "meetingId": result.session.meeting_id,
            "joinUrl": result.session.join_url,
            "startTime": result.session.start_time.isoformat(),
            "status": result.session.status,
        }
    return out


@bookings_bp.post("")
@require_roles(Roles.SUB_ADMIN)
def create_booking():
    result = components().orchestrator.create_booking(_body_fields(), actor_id=g.user.id)
    return jsonify(_result_json(result, "Booking created successfully")), 201


@bookings_bp.get("")
@login_required
def list_bookings():
    page, limit = page_args()
    filters = {
        "payment_status": request.args.get("paymentStatus"),
        "booking_status": request.args.get("bookingStatus"),
        "user_id": request.args.get("userId"),
        "sub_admin_id": request.args.get("subAdminId"),
        "service_id": request.args.get("serviceId"),
    }
    rows, total = components().bookings.list(filters, page, limit)
    return jsonify(
        success=True,
        bookings=[b.to_dict(expand=True) for b in rows],
        pagination=pagination_meta(page, limit, total, "totalBookings"),
    ), 200


@bookings_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = components().bookings.get(booking_id)
    return jsonify(success=True, booking=booking.to_dict(expand=True)), 200


@bookings_bp.put("/<int:booking_id>")
@require_roles(Roles.SUB_ADMIN)
def update_booking(booking_id: int):
    result = components().orchestrator.update_booking(booking_id, _body_fields(), actor_id=g.user.id)
    return jsonify(_result_json(result, "Booking updated successfully")), 200


@bookings_bp.delete("/<int:booking_id>")
@require_roles(Roles.SUPER_ADMIN)
def delete_booking(booking_id: int):
    deleted = components().orchestrator.delete_booking(booking_id, actor_id=g.user.id)
    return jsonify(success=True, message="Booking deleted successfully", deletedBooking=deleted), 200
