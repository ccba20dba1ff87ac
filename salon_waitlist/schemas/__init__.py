"""
Pydantic schemas
"""

from salon_waitlist.schemas.appointment import AppointmentResponse
from salon_waitlist.schemas.response import ErrorDetail, ErrorResponse, HealthResponse
from salon_waitlist.schemas.waitlist import (
    ContactRequest,
    ConversionResponse,
    ConvertToAppointmentRequest,
    SweepResponse,
    WaitlistEntryCreate,
    WaitlistEntryResponse,
    WaitlistEntryUpdate,
)

__all__ = [
    "AppointmentResponse",
    "ContactRequest",
    "ConversionResponse",
    "ConvertToAppointmentRequest",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "SweepResponse",
    "WaitlistEntryCreate",
    "WaitlistEntryResponse",
    "WaitlistEntryUpdate",
]
