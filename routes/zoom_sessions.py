from flask import Blueprint, request, jsonify, g

from models.enums import Roles
from security.rbac import require_roles
from services import components
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ValidationError
from utils.pagination import page_args, pagination_meta

zoom_sessions_bp = Blueprint("zoom_sessions", __name__, url_prefix="/api/zoom-sessions")


@zoom_sessions_bp.get("")
@login_required
def list_sessions():
    page, limit = page_args()
    booking_id = request.args.get("bookingId")
    if booking_id is not None and not booking_id.isdigit():
        raise ValidationError("Invalid bookingId format")

    rows, total = components().sessions.list(
        {
            "status": request.args.get("status"),
            "booking_id": int(booking_id) if booking_id else None,
            "search": request.args.get("search"),
        },
        page,
        limit,
    )
    return jsonify(
        success=True,
        zoomSessions=[s.to_dict() for s in rows],
        pagination=pagination_meta(page, limit, total, "totalZoomSessions"),
    ), 200


@zoom_sessions_bp.get("/<int:session_id>")
@login_required
def get_session(session_id: int):
    session = components().sessions.get(session_id)
    return jsonify(success=True, zoomSession=session.to_dict()), 200


# Manual registration of a meeting created outside the booking flow
@zoom_sessions_bp.post("")
@require_roles(Roles.SUB_ADMIN)
def create_session():
    data = request.get_json(silent=True) or {}
    booking_id = data.get("bookingId")
    if isinstance(booking_id, bool) or not isinstance(booking_id, int):
        raise ValidationError("Invalid bookingId format")

    session = components().sessions.create(
        booking_id,
        data.get("meetingId"),
        data.get("joinUrl"),
        data.get("startTime"),
        data.get("endTime"),
        status=data.get("status") or "scheduled",
        recording_url=data.get("recordingUrl"),
    )
    log_event("ZOOM_SESSION_CREATE", user_id=g.user.id, entity="zoom_session", entity_id=session.id,
              metadata={"booking_id": booking_id, "meeting_id": session.meeting_id})
    return jsonify(success=True, message="Zoom session created successfully", zoomSession=session.to_dict()), 201


@zoom_sessions_bp.delete("/<int:session_id>")
@require_roles(Roles.SUPER_ADMIN)
def delete_session(session_id: int):
    store = components().sessions
    session = store.get(session_id)
    meeting_id = session.meeting_id
    store.delete(session)
    log_event("ZOOM_SESSION_DELETE", user_id=g.user.id, entity="zoom_session", entity_id=session_id,
              metadata={"meeting_id": meeting_id})
    return jsonify(success=True, message="Zoom session deleted successfully"), 200
