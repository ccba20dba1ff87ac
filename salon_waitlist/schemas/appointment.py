"""
Appointment schemas
"""

from typing import Optional
from uuid import UUID
from datetime import datetime

from salon_waitlist.schemas.base import IDSchema, TimestampSchema
from salon_waitlist.models.appointment import AppointmentStatus


class AppointmentResponse(IDSchema, TimestampSchema):
    """Appointment response schema"""
    customer_id: UUID
    salon_id: UUID
    service_id: Optional[UUID] = None
    salon_employee_id: Optional[UUID] = None
    scheduled_start: datetime
    scheduled_end: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
