import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.login_session import LoginSession


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_token():
    return request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "consultdesk_session"))


def _is_stale(sess: LoginSession, now: datetime) -> bool:
    if sess.expires_at <= now:
        return True
    idle = timedelta(seconds=current_app.config.get("IDLE_TIMEOUT_SECONDS", 1800))
    return (sess.last_seen_at or sess.created_at) + idle <= now


def create_session(user_id: int) -> str:
    """Stores the token hash and returns the raw token for the cookie."""
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)
    db.session.add(LoginSession(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
    ))
    db.session.commit()
    return raw_token


def get_session_from_request():
    raw_token = _cookie_token()
    if not raw_token:
        return None

    sess = LoginSession.query.filter_by(token_hash=_hash_token(raw_token), revoked=False).first()
    now = datetime.utcnow()
    if not sess or _is_stale(sess, now):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    updated = LoginSession.query.filter_by(token_hash=_hash_token(raw_token)).update({"revoked": True})
    db.session.commit()
    return updated > 0


def revoke_user_sessions(user_id: int) -> int:
    """Signs a user out everywhere; returns the number of sessions revoked."""
    updated = LoginSession.query.filter_by(user_id=user_id, revoked=False).update({"revoked": True})
    db.session.commit()
    return updated
