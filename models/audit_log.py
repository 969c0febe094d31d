from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # null for webhook/system events
    action = db.Column(db.String(80), nullable=False, index=True)  # e.g. BOOKING_CREATE, ZOOM_WEBHOOK_RECORDING_COMPLETED
    entity = db.Column(db.String(80), nullable=True)   # e.g. booking, zoom_session
    entity_id = db.Column(db.String(80), nullable=True)

    source = db.Column(db.String(20), nullable=False, default="api")  # api, webhook, system
    ip = db.Column(db.String(64), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entityId": self.entity_id,
            "source": self.source,
            "ip": self.ip,
            "metadata": self.metadata_json,
            "timestamp": self.timestamp.isoformat(),
        }
