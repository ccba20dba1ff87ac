"""
Waitlist schemas
"""

from pydantic import ConfigDict, Field, field_validator, model_validator
from typing import Optional
from uuid import UUID
from datetime import date, datetime, timezone

from salon_waitlist.schemas.base import BaseSchema, IDSchema, TimestampSchema
from salon_waitlist.schemas.appointment import AppointmentResponse
from salon_waitlist.models.waitlist import WaitlistStatus, MAX_PRIORITY

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from clients are taken as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_time_window(start: Optional[str], end: Optional[str]) -> None:
    # HH:MM strings compare correctly as text
    if start and end and end <= start:
        raise ValueError("preferred_time_end must be after preferred_time_start")


class WaitlistEntryCreate(BaseSchema):
    """Waitlist entry creation schema"""
    customer_id: UUID
    salon_id: UUID
    service_id: Optional[UUID] = None
    customer_email: Optional[str] = Field(None, max_length=255)
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[str] = Field(None, pattern=TIME_PATTERN)
    preferred_time_end: Optional[str] = Field(None, pattern=TIME_PATTERN)
    flexible: bool = True
    priority: int = Field(0, ge=0, le=MAX_PRIORITY)
    notes: Optional[str] = Field(None, max_length=2000)
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_time_window(self):
        _check_time_window(self.preferred_time_start, self.preferred_time_end)
        return self


class WaitlistEntryUpdate(BaseSchema):
    """
    Partial update; customer and salon are fixed at creation.
    Only fields explicitly sent are applied.
    """
    model_config = ConfigDict(from_attributes=True, use_enum_values=False, extra="forbid")

    service_id: Optional[UUID] = None
    customer_email: Optional[str] = Field(None, max_length=255)
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[str] = Field(None, pattern=TIME_PATTERN)
    preferred_time_end: Optional[str] = Field(None, pattern=TIME_PATTERN)
    flexible: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0, le=MAX_PRIORITY)
    notes: Optional[str] = Field(None, max_length=2000)
    expires_at: Optional[datetime] = None
    status: Optional[WaitlistStatus] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_time_window(self):
        _check_time_window(self.preferred_time_start, self.preferred_time_end)
        for field in ("flexible", "priority", "status"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class WaitlistEntryResponse(IDSchema, TimestampSchema):
    """Waitlist entry response schema"""
    customer_id: UUID
    salon_id: UUID
    service_id: Optional[UUID] = None
    appointment_id: Optional[UUID] = None
    customer_email: Optional[str] = None
    status: WaitlistStatus
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None
    flexible: bool
    priority: int
    notes: Optional[str] = None
    contacted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class ContactRequest(BaseSchema):
    """Mark-contacted request body"""
    notes: Optional[str] = Field(None, max_length=2000)


class ConvertToAppointmentRequest(BaseSchema):
    """Waitlist conversion request; the caller resolves the slot"""
    scheduled_start: datetime
    scheduled_end: datetime
    salon_employee_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("scheduled_start", "scheduled_end")
    @classmethod
    def normalize_schedule(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_schedule(self):
        if self.scheduled_end <= self.scheduled_start:
            raise ValueError("scheduled_end must be after scheduled_start")
        return self


class ConversionResponse(BaseSchema):
    """Result of converting a waitlist entry"""
    waitlist_entry: WaitlistEntryResponse
    appointment: AppointmentResponse


class SweepResponse(BaseSchema):
    """Expiration sweep result"""
    expired_count: int
