import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as consultdesk.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "consultdesk.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create missing tables at startup instead of relying on `flask db upgrade`
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true"

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "consultdesk_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 30 minutes
    IDLE_TIMEOUT_SECONDS = 30 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Zoom server-to-server OAuth app
    ZOOM_ACCOUNT_ID = os.getenv("ZOOM_ACCOUNT_ID")
    ZOOM_CLIENT_ID = os.getenv("ZOOM_CLIENT_ID")
    ZOOM_CLIENT_SECRET = os.getenv("ZOOM_CLIENT_SECRET")
    ZOOM_API_BASE_URL = os.getenv("ZOOM_API_BASE_URL", "https://api.zoom.us/v2")
    ZOOM_TOKEN_URL = os.getenv("ZOOM_TOKEN_URL", "https://zoom.us/oauth/token")
    ZOOM_TOKEN_SAFETY_MARGIN_SECONDS = int(os.getenv("ZOOM_TOKEN_SAFETY_MARGIN_SECONDS", "60"))
    ZOOM_HTTP_TIMEOUT_SECONDS = float(os.getenv("ZOOM_HTTP_TIMEOUT_SECONDS", "15"))
    ZOOM_DEFAULT_TIMEZONE = os.getenv("ZOOM_DEFAULT_TIMEZONE", "UTC")

    # Zoom webhooks. Leaving the secret unset disables signature checks (dev only)
    ZOOM_WEBHOOK_SECRET_TOKEN = os.getenv("ZOOM_WEBHOOK_SECRET_TOKEN")
    ZOOM_SIGNATURE_HEADER = os.getenv("ZOOM_SIGNATURE_HEADER", "x-zm-signature")
    ZOOM_TIMESTAMP_HEADER = os.getenv("ZOOM_TIMESTAMP_HEADER", "x-zm-request-timestamp")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Booking notifications run on a background pool
    NOTIFY_MAX_WORKERS = int(os.getenv("NOTIFY_MAX_WORKERS", "4"))
    NOTIFY_INLINE = False

    # Stripe checkout
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_SUCCESS_URL = os.getenv("STRIPE_SUCCESS_URL")
    STRIPE_CANCEL_URL = os.getenv("STRIPE_CANCEL_URL")
    STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

    # List endpoints
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BCRYPT_ROUNDS = 4
    NOTIFY_INLINE = True
    AUTO_CREATE_TABLES = True

    ZOOM_ACCOUNT_ID = "acct-test"
    ZOOM_CLIENT_ID = "client-test"
    ZOOM_CLIENT_SECRET = "secret-test"
    ZOOM_API_BASE_URL = "https://zoom.test/v2"
    ZOOM_TOKEN_URL = "https://zoom.test/oauth/token"
    ZOOM_WEBHOOK_SECRET_TOKEN = "whsec-test"

    SMTP_HOST = None
    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = None
