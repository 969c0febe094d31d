"""
Booking notifications.

Messages are rendered on the request thread from plain values and then
handed to a background pool; the request never waits for, or learns
about, the outcome. Failures end up in the log only.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

from utils.emailer import send_email

logger = logging.getLogger(__name__)


def _when(booking) -> tuple:
    day = booking.date.strftime("%B %d, %Y") if booking.date else ""
    start = booking.timeslot_start.strftime("%Y-%m-%d %H:%M UTC")
    end = booking.timeslot_end.strftime("%Y-%m-%d %H:%M UTC")
    return day, f"{start} - {end}"


class Notifier:
    def __init__(self, app=None):
        self.app = None
        self.inline = False
        self._executor = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self.inline = app.config.get("NOTIFY_INLINE", False)
        if not self.inline:
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("NOTIFY_MAX_WORKERS", 4),
                thread_name_prefix="notify_",
            )

    def shutdown(self):
        if self._executor:
            self._executor.shutdown(wait=False)

    def _run(self, messages, context: str):
        with self.app.app_context():
            for to_email, subject, text, html in messages:
                try:
                    sent, error = send_email(to_email, subject, text, html=html)
                except Exception:
                    logger.exception("Error while sending %s email to %s", context, to_email)
                    continue
                if not sent:
                    logger.error("Failed to send %s email to %s: %s", context, to_email, error)

    def dispatch(self, messages, context: str):
        """Fire-and-forget. Returns the Future (None when run inline or nothing to send)."""
        if not messages:
            return None
        if self.inline:
            self._run(messages, context)
            return None
        return self._executor.submit(self._run, messages, context)

    # ---------- booking messages ----------

    def _party_messages(self, booking, link, user_subject, user_intro, provider_subject, provider_intro):
        user, provider, service = booking.user, booking.sub_admin, booking.service
        day, window = _when(booking)
        messages = []
        for person, subject, intro in (
            (user, user_subject, user_intro),
            (provider, provider_subject, provider_intro),
        ):
            if not person or not person.email:
                logger.warning("User %s has no email address. Skipping notification.",
                               person.id if person else None)
                continue
            text = (
                f"Hi {person.name},\n\n{intro}\n\n"
                f"Service: {service.name}\nDate: {day}\nTime: {window}\n"
                f"Zoom Meeting Link: {link}\n\n"
                "Please join a few minutes before the scheduled time."
            )
            html = (
                f"<p>Hi {person.name},</p><p>{intro}</p>"
                f"<p><strong>Date:</strong> {day}<br/><strong>Time:</strong> {window}</p>"
                f'<p><strong>Zoom Meeting Link:</strong> <a href="{link}">Join Meeting</a></p>'
                "<p>Please join a few minutes before the scheduled time.</p>"
            )
            messages.append((person.email, subject, text, html))
        return messages

    def booking_confirmed(self, booking):
        """Sent when a booking first carries a join link (created paid, or paid later)."""
        if not booking.zoom_link:
            logger.warning("No Zoom join link available for booking %s. Skipping email notifications.", booking.id)
            return None

        service_name = booking.service.name
        messages = self._party_messages(
            booking,
            booking.zoom_link,
            user_subject=f"Booking Confirmation - {service_name}",
            user_intro=f"Your booking for {service_name} is confirmed.",
            provider_subject=f"New Booking Assigned - {service_name}",
            provider_intro=f"A new booking has been scheduled with {booking.user.name} for {service_name}.",
        )
        return self.dispatch(messages, f"booking {booking.id} confirmation")
