"""
Notification log: one row per send attempt.

Doubles as the idempotency ledger: a `sent` row for
(reference_id, reference_type, channel) means that message must not go out again.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index, CheckConstraint, func

from ticketing.db.base import Base


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    channel = Column(String(20), nullable=False)
    recipient_phone = Column(String(20), nullable=False)  # masked
    message = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    reference_id = Column(String(64), nullable=True)
    reference_type = Column(String(30), nullable=True)
    attempt = Column(Integer, nullable=False, default=1)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("channel IN ('sms', 'whatsapp')", name="check_notification_channel"),
        CheckConstraint(
            "status IN ('pending', 'sent', 'failed')", name="check_notification_status"
        ),
        Index(
            "ix_notification_logs_reference",
            "reference_id", "reference_type", "channel", "status",
        ),
    )
