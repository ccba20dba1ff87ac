"""
Waitlist entry model and status state machine
"""

from sqlalchemy import Column, Integer, Boolean, Date, String, Text, Enum, Index, Uuid, CheckConstraint
import enum

from salon_waitlist.models.base import BaseModel, UTCDateTime


class WaitlistStatus(str, enum.Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


MAX_PRIORITY = 10

TERMINAL_STATUSES = frozenset({
    WaitlistStatus.BOOKED,
    WaitlistStatus.CANCELLED,
    WaitlistStatus.EXPIRED,
})

OPEN_STATUSES = frozenset({
    WaitlistStatus.PENDING,
    WaitlistStatus.CONTACTED,
})

ALLOWED_TRANSITIONS = {
    WaitlistStatus.PENDING: frozenset({
        WaitlistStatus.CONTACTED,
        WaitlistStatus.BOOKED,
        WaitlistStatus.CANCELLED,
        WaitlistStatus.EXPIRED,
    }),
    WaitlistStatus.CONTACTED: frozenset({
        WaitlistStatus.CONTACTED,
        WaitlistStatus.BOOKED,
        WaitlistStatus.CANCELLED,
        WaitlistStatus.EXPIRED,
    }),
    WaitlistStatus.BOOKED: frozenset(),
    WaitlistStatus.CANCELLED: frozenset(),
    WaitlistStatus.EXPIRED: frozenset(),
}


def can_transition(current: WaitlistStatus, requested: WaitlistStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class WaitlistEntry(BaseModel):
    """
    A customer's request to be served when a slot frees up at a salon
    """
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index("ix_waitlist_salon_status_order", "salon_id", "status", "priority", "created_at"),
        CheckConstraint(f"priority >= 0 AND priority <= {MAX_PRIORITY}", name="ck_waitlist_priority_range"),
        CheckConstraint(
            "(status = 'BOOKED' AND appointment_id IS NOT NULL) "
            "OR (status != 'BOOKED' AND appointment_id IS NULL)",
            name="ck_waitlist_booked_has_appointment",
        ),
    )

    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    salon_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    service_id = Column(Uuid(as_uuid=True), index=True)
    appointment_id = Column(Uuid(as_uuid=True), unique=True)
    customer_email = Column(String(255))

    status = Column(
        Enum(WaitlistStatus),
        default=WaitlistStatus.PENDING,
        nullable=False,
        index=True
    )

    preferred_date = Column(Date)
    preferred_time_start = Column(String(5))  # HH:MM
    preferred_time_end = Column(String(5))
    flexible = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    notes = Column(Text)

    contacted_at = Column(UTCDateTime())
    expires_at = Column(UTCDateTime(), index=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return (
            f"<WaitlistEntry(id={self.id}, salon_id={self.salon_id}, "
            f"status={self.status}, priority={self.priority})>"
        )
