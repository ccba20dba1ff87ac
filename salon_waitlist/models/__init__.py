"""
Database models
"""

from salon_waitlist.models.waitlist import WaitlistEntry, WaitlistStatus
from salon_waitlist.models.appointment import Appointment, AppointmentStatus
from salon_waitlist.models.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)

__all__ = [
    "WaitlistEntry",
    "WaitlistStatus",
    "Appointment",
    "AppointmentStatus",
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationType",
]
