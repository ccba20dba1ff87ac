"""
Notification model
"""

from sqlalchemy import Column, String, Enum, Text, Uuid
import enum

from salon_waitlist.models.base import BaseModel, UTCDateTime


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class NotificationType(str, enum.Enum):
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    WAITLIST_OPPORTUNITY = "waitlist_opportunity"


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(BaseModel):
    """
    Notification record for customer communications
    """
    __tablename__ = "notifications"

    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    appointment_id = Column(Uuid(as_uuid=True), index=True)
    channel = Column(Enum(NotificationChannel), nullable=False)
    type = Column(Enum(NotificationType), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    recipient = Column(String(255))
    status = Column(
        Enum(NotificationStatus),
        default=NotificationStatus.PENDING,
        nullable=False,
        index=True
    )
    error_message = Column(Text)
    sent_at = Column(UTCDateTime())

    def __repr__(self):
        return f"<Notification(id={self.id}, customer_id={self.customer_id}, type={self.type}, status={self.status})>"
