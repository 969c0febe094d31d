from datetime import datetime
from models.db import db
from models.enums import PaymentStatus, BookingStatus


def _iso(value):
    return value.isoformat() if value else None


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    sub_admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    date = db.Column(db.DateTime, nullable=False)
    timeslot_start = db.Column(db.DateTime, nullable=False)
    timeslot_end = db.Column(db.DateTime, nullable=False)

    amount = db.Column(db.Float, nullable=False)

    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING, index=True)
    booking_status = db.Column(db.String(20), nullable=False, default=BookingStatus.SCHEDULED, index=True)

    # join link is only ever set once payment_status == success (enforced by BookingStore)
    zoom_link = db.Column(db.String(512), nullable=True)
    zoom_recording_link = db.Column(db.String(1024), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])
    sub_admin = db.relationship("User", foreign_keys=[sub_admin_id])
    service = db.relationship("Service")

    def to_dict(self, expand=False):
        out = {
            "id": self.id,
            "userId": self.user_id,
            "subAdminId": self.sub_admin_id,
            "serviceId": self.service_id,
            "date": _iso(self.date),
            "timeslot": {"start": _iso(self.timeslot_start), "end": _iso(self.timeslot_end)},
            "amount": self.amount,
            "paymentStatus": self.payment_status,
            "bookingStatus": self.booking_status,
            "zoomLink": self.zoom_link,
            "zoomRecordingLink": self.zoom_recording_link,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if expand:
            out["user"] = self.user.to_dict() if self.user else None
            out["subAdmin"] = self.sub_admin.to_dict() if self.sub_admin else None
            out["service"] = self.service.to_dict() if self.service else None
        return out
