from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.enums import Roles
from models.service import Service
from models.user import User, Role
from security.password import hash_password, verify_password
from security.rbac import require_roles
from security.session import create_session, revoke_session, revoke_user_sessions
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _create_user(data: dict, role_name: str):
    """Returns (user, error_response)."""
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not name or len(name) > 120:
        return None, (jsonify(success=False, message="Invalid name"), 400)
    if not _is_valid_email(email):
        return None, (jsonify(success=False, message="Invalid email"), 400)
    if len(password) < 8:
        return None, (jsonify(success=False, message="Password must be at least 8 characters"), 400)

    service_id = data.get("serviceId")
    if role_name == Roles.SUB_ADMIN:
        if not service_id or not db.session.get(Service, service_id):
            return None, (jsonify(success=False, message="Sub-admins need a valid serviceId"), 400)

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return None, (jsonify(success=False, message="Email already registered"), 409)

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        contact_number=(data.get("contactNumber") or None),
        service_id=service_id if role_name == Roles.SUB_ADMIN else None,
    )
    db.session.add(user)
    db.session.flush()

    role = Role.query.filter_by(name=role_name).first()
    if role:
        user.roles.append(role)
    db.session.commit()
    return user, None


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    user, failure = _create_user(data, Roles.USER)
    if failure:
        return failure
    log_event("REGISTER_SUCCESS", user_id=user.id)
    return jsonify(success=True, message="Registered successfully", user=user.to_dict()), 201


@auth_bp.post("/users")
@require_roles(Roles.SUPER_ADMIN)
def create_user_with_role():
    data = request.get_json(silent=True) or {}
    role_name = data.get("role") or Roles.USER
    if role_name not in Roles.ALL:
        return jsonify(success=False, message=f"Invalid role. Must be one of: {', '.join(Roles.ALL)}"), 400

    user, failure = _create_user(data, role_name)
    if failure:
        return failure
    log_event("USER_CREATE", user_id=g.user.id, entity="user", entity_id=user.id, metadata={"role": role_name})
    return jsonify(success=True, message="User created successfully", user=user.to_dict()), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(success=False, message="Invalid credentials"), 401

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "consultdesk_session")

    resp = jsonify(success=True, message="Login OK", user=user.to_dict())
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(success=True, user=g.user.to_dict()), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "consultdesk_session")
    if request.args.get("all") == "true":
        revoked = revoke_user_sessions(g.user.id)
        log_event("LOGOUT_ALL", user_id=g.user.id, metadata={"sessions": revoked})
    else:
        revoke_session(request.cookies.get(cookie_name))
        log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(success=True, message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
