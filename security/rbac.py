from functools import wraps
from flask import g, jsonify

from models.enums import Roles

def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return role_name in user.role_names

def require_roles(*role_names: str):
    """
    Usage: @require_roles("SUB_ADMIN")
    SUPER_ADMIN passes every check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(success=False, message="Authentication required"), 401

            user_roles = user.role_names
            if Roles.SUPER_ADMIN not in user_roles and not user_roles.intersection(role_names):
                return jsonify(success=False, message="You do not have permission to perform this action"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
