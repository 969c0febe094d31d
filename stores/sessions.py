"""
Video-session persistence, one ZoomSession per booking.

Completion is the only transition that reaches back into the booking:
complete() writes the session and mirrors status/recording link onto
the owning booking in the same commit.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import db
from models.enums import SessionStatus
from models.zoom_session import ZoomSession
from stores.bookings import BookingStore, parse_instant
from utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, bookings: BookingStore):
        self.bookings = bookings

    def create(self, booking_id: int, meeting_id: str, join_url: str, start_time, end_time=None,
               status: str = SessionStatus.SCHEDULED, recording_url=None) -> ZoomSession:
        if not meeting_id or not join_url or start_time is None:
            raise ValidationError("bookingId, meetingId, joinUrl, and startTime are required fields")
        if status not in SessionStatus.ALL:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(SessionStatus.ALL)}")

        start = parse_instant(start_time, "startTime")
        end = parse_instant(end_time, "endTime") if end_time else None
        if end is not None and end <= start:
            raise ValidationError("endTime must be after startTime")

        self.bookings.get(booking_id)
        if self.find_by_booking_id(booking_id):
            raise ConflictError("Zoom session already exists for this booking")

        session = ZoomSession(
            booking_id=booking_id,
            meeting_id=str(meeting_id),
            join_url=join_url,
            start_time=start,
            end_time=end,
            recording_url=recording_url,
            status=status,
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            # lost the race against a concurrent creator for the same booking
            db.session.rollback()
            raise ConflictError("Zoom session already exists for this booking")
        return session

    # ---------- reads ----------

    def find_by_meeting_id(self, meeting_id):
        if meeting_id is None:
            return None
        return ZoomSession.query.filter_by(meeting_id=str(meeting_id)).first()

    def find_by_booking_id(self, booking_id):
        return ZoomSession.query.filter_by(booking_id=booking_id).first()

    def get(self, session_id) -> ZoomSession:
        session = db.session.get(ZoomSession, session_id)
        if not session:
            raise NotFoundError("Zoom session not found")
        return session

    def list(self, filters: dict, page: int = 1, limit: int = 10):
        q = ZoomSession.query
        status = filters.get("status")
        if status in SessionStatus.ALL:
            q = q.filter(ZoomSession.status == status)
        if filters.get("booking_id") is not None:
            q = q.filter(ZoomSession.booking_id == filters["booking_id"])
        if filters.get("search"):
            q = q.filter(ZoomSession.meeting_id.contains(filters["search"]))

        total = q.count()
        rows = (
            q.order_by(ZoomSession.created_at.desc(), ZoomSession.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    # ---------- lifecycle ----------

    def mark_ongoing(self, meeting_id):
        """scheduled -> ongoing. Unknown meetings and later states are left alone."""
        session = self.find_by_meeting_id(meeting_id)
        if not session:
            logger.info("meeting %s started but no session is tracked", meeting_id)
            return None
        if session.status != SessionStatus.SCHEDULED:
            return session
        session.status = SessionStatus.ONGOING
        db.session.commit()
        return session

    def record_end(self, meeting_id, end_time: datetime):
        # status stays as is; completion waits for the recording
        session = self.find_by_meeting_id(meeting_id)
        if not session:
            logger.info("meeting %s ended but no session is tracked", meeting_id)
            return None
        if session.status == SessionStatus.COMPLETED:
            return session
        session.end_time = end_time
        db.session.commit()
        return session

    def complete(self, meeting_id, recording_url=None):
        session = self.find_by_meeting_id(meeting_id)
        if not session:
            logger.info("completion for untracked meeting %s ignored", meeting_id)
            return None

        already_done = session.status == SessionStatus.COMPLETED
        if already_done and (recording_url is None or recording_url == session.recording_url):
            return session

        session.status = SessionStatus.COMPLETED
        if recording_url is not None:
            session.recording_url = recording_url
        self.bookings.apply_session_completion(session.booking_id, session.recording_url)
        db.session.commit()
        return session

    def update_window(self, session: ZoomSession, start_time: datetime, end_time: datetime):
        session.start_time = start_time
        session.end_time = end_time
        db.session.commit()
        return session

    def delete(self, session: ZoomSession) -> None:
        db.session.delete(session)
        db.session.commit()
