from datetime import datetime
from models.db import db
from models.enums import PaymentStatus

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)  # stripe, paypal, razorpay, other
    transaction_id = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING)
    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "userId": self.user_id,
            "amount": self.amount,
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
        }
