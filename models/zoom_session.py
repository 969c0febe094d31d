from datetime import datetime
from models.db import db
from models.enums import SessionStatus


class ZoomSession(db.Model):
    __tablename__ = "zoom_sessions"

    id = db.Column(db.Integer, primary_key=True)

    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False)
    meeting_id = db.Column(db.String(64), nullable=False, index=True)
    join_url = db.Column(db.String(512), nullable=False)

    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=True)
    recording_url = db.Column(db.String(1024), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=SessionStatus.SCHEDULED)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        # One video session per booking; racing creators get an IntegrityError
        db.UniqueConstraint("booking_id", name="uq_zoom_session_booking"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "meetingId": self.meeting_id,
            "joinUrl": self.join_url,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "recordingUrl": self.recording_url,
            "status": self.status,
        }
