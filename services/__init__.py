from types import SimpleNamespace

from flask import current_app

from services.notifications import Notifier
from services.orchestrator import BookingOrchestrator
from services.zoom import ZoomClient
from services.zoom_webhooks import WebhookReconciler
from stores.bookings import BookingStore
from stores.sessions import SessionStore

EXTENSION_KEY = "consultdesk"


def init_services(app, zoom_client=None):
    """Builds the process-wide component graph and hangs it on app.extensions."""
    zoom = zoom_client or ZoomClient.from_config(app.config)
    bookings = BookingStore()
    sessions = SessionStore(bookings)
    notifier = Notifier(app)

    app.extensions[EXTENSION_KEY] = SimpleNamespace(
        zoom=zoom,
        bookings=bookings,
        sessions=sessions,
        notifier=notifier,
        orchestrator=BookingOrchestrator(
            bookings, sessions, zoom, notifier,
            timezone_name=app.config.get("ZOOM_DEFAULT_TIMEZONE", "UTC"),
        ),
        reconciler=WebhookReconciler(sessions, zoom),
    )
    return app.extensions[EXTENSION_KEY]


def components():
    return current_app.extensions[EXTENSION_KEY]
