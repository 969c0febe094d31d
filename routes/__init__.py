from routes.health import health_bp
from routes.auth import auth_bp
from routes.bookings import bookings_bp
from routes.zoom_sessions import zoom_sessions_bp
from routes.service_catalog import service_catalog_bp
from routes.payments import payments_bp
from routes.stripe_webhook import stripe_webhook_bp
from routes.zoom_webhook import zoom_webhook_bp
from routes.audit_logs import audit_bp

ALL_BLUEPRINTS = (
    health_bp,
    auth_bp,
    bookings_bp,
    zoom_sessions_bp,
    service_catalog_bp,
    payments_bp,
    stripe_webhook_bp,
    zoom_webhook_bp,
    audit_bp,
)
