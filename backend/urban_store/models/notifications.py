from __future__ import annotations

from ..extensions import db
from urban_store.time_utils import to_utc_z


class NotificationLog(db.Model):
    """
    Append-only record of one reminder delivery attempt.

    WHY: Every send attempt, successful or not, leaves a row so failed
    reminders are visible and the next scheduled run can be audited.
    Customer name and number are copied so the row still reads correctly
    after the customer is edited or deleted; customer_id is therefore a plain
    reference, not a foreign key.

    No code path updates or deletes these rows.
    """
    __tablename__ = "notification_logs"
    __table_args__ = (
        db.Index("ix_notification_logs_status_sent", "status", "sent_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    whatsapp_number = db.Column(db.String(32), nullable=False)

    kind = db.Column(db.String(16), nullable=False, default="DEBT")  # DEBT, SCHEDULED
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # SENT, FAILED, PENDING
    provider_response = db.Column(db.JSON, nullable=True)
    error = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "whatsapp_number": self.whatsapp_number,
            "kind": self.kind,
            "message": self.message,
            "status": self.status,
            "provider_response": self.provider_response,
            "error": self.error,
            "sent_at": to_utc_z(self.sent_at),
        }
