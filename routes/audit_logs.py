from flask import Blueprint, jsonify, request

from models.audit_log import AuditLog
from models.enums import Roles
from security.rbac import require_roles

audit_bp = Blueprint("audit", __name__, url_prefix="/super-admin")


@audit_bp.get("/audit-logs")
@require_roles(Roles.SUPER_ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    source = request.args.get("source")
    if source:
        q = q.filter(AuditLog.source == source)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify(success=True, auditLogs=[r.to_dict() for r in rows]), 200
