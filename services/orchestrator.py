"""
Booking lifecycle: ties the booking record, its Zoom meeting and the
session record together.

Zoom is a side effect here. Anything that fails while talking to Zoom
is logged and returned as a warning; the booking write itself has
already been committed and is never rolled back because of it.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from models.booking import Booking
from models.enums import PaymentStatus, SessionStatus
from models.zoom_session import ZoomSession
from services.notifications import Notifier
from services.zoom import ZoomClient, format_start_time
from stores.bookings import BookingStore
from stores.sessions import SessionStore
from utils.audit import log_event
from utils.errors import DomainError, ConflictError

logger = logging.getLogger(__name__)


def meeting_duration_minutes(booking: Booking) -> int:
    """Whole minutes between timeslot start and end, half rounding up."""
    seconds = (booking.timeslot_end - booking.timeslot_start).total_seconds()
    return int(math.floor(seconds / 60 + 0.5))


@dataclass
class BookingResult:
    booking: Booking
    session: Optional[ZoomSession] = None
    warnings: list = field(default_factory=list)


class BookingOrchestrator:
    def __init__(self, bookings: BookingStore, sessions: SessionStore, zoom: ZoomClient,
                 notifier: Notifier, timezone_name: str = "UTC"):
        self.bookings = bookings
        self.sessions = sessions
        self.zoom = zoom
        self.notifier = notifier
        self.timezone_name = timezone_name

    # ---------- meeting scheduling ----------

    def _schedule_meeting(self, booking: Booking, auto_recording: str, warnings: list):
        duration = meeting_duration_minutes(booking)
        if duration < 1:
            warnings.append("Meeting duration must be at least 1 minute; Zoom meeting not created")
            logger.warning("Booking %s has a %s minute timeslot, skipping Zoom meeting", booking.id, duration)
            return None

        service, user, provider = booking.service, booking.user, booking.sub_admin
        try:
            meeting = self.zoom.create_meeting(
                f"{service.name} - {user.name} & {provider.name}",
                booking.timeslot_start,
                duration,
                self.timezone_name,
                agenda=f"Consultation session for {service.name} service",
                auto_recording=auto_recording,
            )
        except DomainError as exc:
            logger.error("Failed to create Zoom meeting for booking %s: %s", booking.id, exc.message)
            log_event("ZOOM_MEETING_CREATE_FAILED", entity="booking", entity_id=booking.id,
                      metadata={"error": exc.message})
            warnings.append(f"Zoom meeting could not be created: {exc.message}")
            return None

        try:
            session = self.sessions.create(
                booking.id,
                meeting.id,
                meeting.join_url,
                booking.timeslot_start,
                booking.timeslot_end,
                status=SessionStatus.SCHEDULED,
            )
        except ConflictError:
            # a concurrent request registered a session first; drop our meeting and use theirs
            logger.warning("Session for booking %s created concurrently, discarding meeting %s",
                           booking.id, meeting.id)
            self._discard_meeting(meeting.id)
            return self.sessions.find_by_booking_id(booking.id)

        logger.info("Zoom meeting %s created for booking %s", meeting.id, booking.id)
        log_event("ZOOM_MEETING_CREATE", entity="zoom_session", entity_id=session.id,
                  metadata={"booking_id": booking.id, "meeting_id": meeting.id})
        return session

    def _discard_meeting(self, meeting_id: str) -> None:
        try:
            self.zoom.delete_meeting(meeting_id)
        except DomainError as exc:
            logger.error("Failed to delete Zoom meeting %s: %s", meeting_id, exc.message)

    def _reschedule_meeting(self, booking: Booking, session: ZoomSession, warnings: list) -> None:
        duration = meeting_duration_minutes(booking)
        if duration < 1:
            warnings.append("Meeting duration must be at least 1 minute; Zoom meeting not updated")
            return
        try:
            self.zoom.update_meeting(session.meeting_id, {
                "start_time": format_start_time(booking.timeslot_start),
                "duration": duration,
            })
        except DomainError as exc:
            logger.error("Failed to update Zoom meeting %s for booking %s: %s",
                         session.meeting_id, booking.id, exc.message)
            warnings.append(f"Zoom meeting could not be updated: {exc.message}")
            return
        self.sessions.update_window(session, booking.timeslot_start, booking.timeslot_end)
        logger.info("Zoom meeting %s updated for booking %s", session.meeting_id, booking.id)

    # ---------- entry points ----------

    def create_booking(self, fields: dict, actor_id=None) -> BookingResult:
        booking = self.bookings.create(fields)
        log_event("BOOKING_CREATE", user_id=actor_id, entity="booking", entity_id=booking.id,
                  metadata={"payment_status": booking.payment_status})

        result = BookingResult(booking=booking)
        result.session = self._schedule_meeting(booking, "cloud", result.warnings)

        if result.session and booking.payment_status == PaymentStatus.SUCCESS:
            self.bookings.set_link(booking.id, result.session.join_url)

        self.notifier.booking_confirmed(booking)
        return result

    def update_booking(self, booking_id, fields: dict, actor_id=None) -> BookingResult:
        current = self.bookings.get(booking_id)
        was_paid = current.payment_status == PaymentStatus.SUCCESS
        had_link = bool(current.zoom_link)
        old_window = (current.timeslot_start, current.timeslot_end)

        booking = self.bookings.update(booking_id, fields)
        log_event("BOOKING_UPDATE", user_id=actor_id, entity="booking", entity_id=booking.id,
                  metadata={"fields": sorted(fields)})

        result = BookingResult(booking=booking)
        is_paid = booking.payment_status == PaymentStatus.SUCCESS
        session = self.sessions.find_by_booking_id(booking.id)

        if session:
            if is_paid and not was_paid:
                self.bookings.set_link(booking.id, session.join_url)
            if "timeslot" in fields and (booking.timeslot_start, booking.timeslot_end) != old_window:
                self._reschedule_meeting(booking, session, result.warnings)
        elif is_paid:
            # paid booking that never got a meeting (created before Zoom, or Zoom was down)
            session = self._schedule_meeting(booking, "none", result.warnings)
            if session:
                self.bookings.set_link(booking.id, session.join_url)

        result.session = session
        if booking.zoom_link and not had_link:
            self.notifier.booking_confirmed(booking)
        return result

    def delete_booking(self, booking_id, actor_id=None) -> dict:
        booking = self.bookings.get(booking_id)
        session = self.sessions.find_by_booking_id(booking.id)
        if session:
            self._discard_meeting(session.meeting_id)
            self.sessions.delete(session)
            logger.info("Zoom session for booking %s removed", booking.id)

        summary = {
            "id": booking.id,
            "userId": booking.user_id,
            "serviceId": booking.service_id,
            "date": booking.date.isoformat(),
        }
        self.bookings.delete(booking.id)
        log_event("BOOKING_DELETE", user_id=actor_id, entity="booking", entity_id=summary["id"])
        return summary
