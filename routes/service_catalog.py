from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.enums import Roles
from models.service import Service
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ConflictError, ValidationError

service_catalog_bp = Blueprint("service_catalog", __name__, url_prefix="/api/services")


def _non_negative(data, key, required=True):
    value = data.get(key)
    if value is None and not required:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError(f"{key} must be a non-negative number")
    return value


@service_catalog_bp.post("")
@require_roles(Roles.SUPER_ADMIN)
def create_service():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Service name required")

    duration = _non_negative(data, "duration")
    if int(duration) < 1:
        raise ValidationError("duration must be at least 1 minute")

    service = Service(
        name=name,
        description=(data.get("description") or None),
        service_fee=_non_negative(data, "serviceFee"),
        consultation_fee=_non_negative(data, "consultationFee"),
        duration=int(duration),
    )
    db.session.add(service)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Service name already exists")

    log_event("SERVICE_CREATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(success=True, message="Service created successfully", service=service.to_dict()), 201


@service_catalog_bp.get("")
@login_required
def list_services():
    q = Service.query
    if request.args.get("includeInactive") != "true":
        q = q.filter_by(is_active=True)
    return jsonify(success=True, services=[s.to_dict() for s in q.order_by(Service.name.asc()).all()]), 200
