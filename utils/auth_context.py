from functools import wraps
from flask import g, jsonify
from models import db
from security.session import get_session_from_request
from models.user import User

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.login_session = None
        return
    g.login_session = sess
    g.user = db.session.get(User, sess.user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(success=False, message="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
