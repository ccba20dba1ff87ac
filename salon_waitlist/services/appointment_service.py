"""
Appointment creation used by waitlist conversion
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_waitlist.core.exceptions import NotFoundError, ValidationError
from salon_waitlist.models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


class AppointmentService:
    """
    Creates appointments inside the caller's session so the insert commits
    or rolls back together with the caller's other writes.
    """

    async def create_appointment(
        self,
        db: AsyncSession,
        *,
        customer_id: UUID,
        salon_id: UUID,
        scheduled_start: datetime,
        scheduled_end: datetime,
        service_id: Optional[UUID] = None,
        salon_employee_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        if scheduled_start is None or scheduled_end is None:
            raise ValidationError("scheduled_start and scheduled_end are required", field="scheduled_start")
        if scheduled_start.tzinfo is None or scheduled_end.tzinfo is None:
            raise ValidationError("Schedule times must be timezone-aware", field="scheduled_start")
        if scheduled_end <= scheduled_start:
            raise ValidationError("scheduled_end must be after scheduled_start", field="scheduled_end")

        appointment = Appointment(
            customer_id=customer_id,
            salon_id=salon_id,
            service_id=service_id,
            salon_employee_id=salon_employee_id,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=AppointmentStatus.BOOKED,
            notes=notes,
        )
        db.add(appointment)
        await db.flush()

        logger.info(f"Appointment {appointment.id} created for customer {customer_id} at salon {salon_id}")
        return appointment

    async def get_appointment(self, db: AsyncSession, appointment_id: UUID) -> Appointment:
        result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment


appointment_service = AppointmentService()
