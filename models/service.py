from datetime import datetime
from models.db import db

class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    service_fee = db.Column(db.Float, nullable=False, default=0)
    consultation_fee = db.Column(db.Float, nullable=False, default=0)
    duration = db.Column(db.Integer, nullable=False)  # minutes

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "serviceFee": self.service_fee,
            "consultationFee": self.consultation_fee,
            "duration": self.duration,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
