"""
Customer notifications

Every notification is recorded first, then dispatched on its channel.
Email goes out through SendGrid when a recipient address is known; other
channels, and email without an address, stay pending for the platform's
delivery workers.
"""

from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from salon_waitlist.core.database import async_session
from salon_waitlist.models.base import utcnow
from salon_waitlist.models.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from salon_waitlist.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)

TEMPLATE_FOR_TYPE = {
    NotificationType.APPOINTMENT_CONFIRMED: "appointment_available",
    NotificationType.WAITLIST_OPPORTUNITY: "waitlist_opportunity",
}


class NotificationService:
    """Records and dispatches notifications in a session of its own"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        emailer: Optional[EmailService] = None,
    ):
        self.session_factory = session_factory or async_session
        self.emailer = emailer or email_service

    async def send_notification(
        self,
        customer_id: UUID,
        appointment_id: Optional[UUID],
        channel: NotificationChannel,
        type: NotificationType,
        subject: str,
        body: str,
        recipient: Optional[str] = None,
    ) -> Notification:
        async with self.session_factory() as db:
            notification = Notification(
                customer_id=customer_id,
                appointment_id=appointment_id,
                channel=channel,
                type=type,
                subject=subject,
                body=body,
                recipient=recipient,
                status=NotificationStatus.PENDING,
            )
            db.add(notification)
            await db.commit()

            await self._dispatch(notification)
            await db.commit()

        return notification

    async def _dispatch(self, notification: Notification) -> None:
        if notification.channel == NotificationChannel.IN_APP:
            notification.status = NotificationStatus.SENT
            notification.sent_at = utcnow()
            return

        if notification.channel != NotificationChannel.EMAIL or not notification.recipient:
            logger.info(f"Notification {notification.id} queued for {notification.channel.value} delivery")
            return

        if not self.emailer.is_configured:
            return

        try:
            sent = await self.emailer.send_email(
                to_email=notification.recipient,
                subject=notification.subject,
                template_name=TEMPLATE_FOR_TYPE[notification.type],
                context={
                    "subject": notification.subject,
                    "body": notification.body,
                    "appointment_id": notification.appointment_id,
                },
            )
        except Exception as e:
            logger.error(f"Error sending notification {notification.id}: {e}")
            notification.status = NotificationStatus.FAILED
            notification.error_message = str(e)
            return

        if sent:
            notification.status = NotificationStatus.SENT
            notification.sent_at = utcnow()
        else:
            notification.status = NotificationStatus.FAILED
            notification.error_message = "Email provider rejected the message"


notification_service = NotificationService()
