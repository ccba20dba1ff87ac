"""
Appointment model
"""

from sqlalchemy import Column, Enum, Text, Uuid, Index
import enum

from salon_waitlist.models.base import BaseModel, UTCDateTime


class AppointmentStatus(str, enum.Enum):
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class Appointment(BaseModel):
    """
    Confirmed appointment at a salon
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_salon_start", "salon_id", "scheduled_start"),
    )

    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    salon_id = Column(Uuid(as_uuid=True), nullable=False)
    service_id = Column(Uuid(as_uuid=True))
    salon_employee_id = Column(Uuid(as_uuid=True), index=True)
    scheduled_start = Column(UTCDateTime(), nullable=False)
    scheduled_end = Column(UTCDateTime(), nullable=False)
    status = Column(
        Enum(AppointmentStatus),
        default=AppointmentStatus.BOOKED,
        nullable=False,
        index=True
    )
    notes = Column(Text)

    def __repr__(self):
        return f"<Appointment(id={self.id}, salon_id={self.salon_id}, start={self.scheduled_start}, status={self.status})>"
