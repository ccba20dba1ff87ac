"""
Waitlist endpoints
"""

from typing import Any, List, Optional
from uuid import UUID
import logging
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_waitlist.config import settings
from salon_waitlist.core.database import get_session
from salon_waitlist.core.exceptions import AuthorizationError
from salon_waitlist.core.roles import UserRole
from salon_waitlist.core.security import Actor, RateLimiter, require_role
from salon_waitlist.models.waitlist import WaitlistEntry, WaitlistStatus
from salon_waitlist.schemas.appointment import AppointmentResponse
from salon_waitlist.schemas.waitlist import (
    ContactRequest,
    ConversionResponse,
    ConvertToAppointmentRequest,
    SweepResponse,
    WaitlistEntryCreate,
    WaitlistEntryResponse,
    WaitlistEntryUpdate,
)
from salon_waitlist.services.waitlist_service import WaitlistService, get_waitlist_service

router = APIRouter()
logger = logging.getLogger(__name__)

create_rate_limit = RateLimiter("waitlist", settings.RATE_LIMIT_WAITLIST_PER_MINUTE, window=60)


def _ensure_own_entry(actor: Actor, customer_id: UUID) -> None:
    # Customers only see and create their own entries; staff roles are unrestricted
    if actor.role == UserRole.CUSTOMER and actor.id != customer_id:
        raise AuthorizationError(
            "Customers can only access their own waitlist entries",
            details={"customer_id": str(customer_id)}
        )


@router.post("/", response_model=WaitlistEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_waitlist_entry(
    entry_data: WaitlistEntryCreate,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.CUSTOMER)),
    _: None = Depends(create_rate_limit),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    """
    Add a customer to a salon's waitlist
    """
    _ensure_own_entry(actor, entry_data.customer_id)
    return await service.create_entry(db, entry_data)


@router.get("/", response_model=List[WaitlistEntryResponse])
async def list_waitlist_entries(
    salon_id: Optional[UUID] = Query(None),
    status: Optional[WaitlistStatus] = Query(None),
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    """
    List waitlist entries in serving order
    """
    return await service.list_entries(db, salon_id=salon_id, status=status)


@router.get("/next-available", response_model=Optional[WaitlistEntryResponse])
async def next_available(
    salon_id: UUID = Query(...),
    service_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    """
    The next customer to offer a freed slot to, or null when nobody is waiting
    """
    return await service.select_next(db, salon_id=salon_id, service_id=service_id)


@router.post("/sweep-expired", response_model=SweepResponse)
async def sweep_expired(
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.ASSOCIATION_ADMIN)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    expired = await service.sweep_expired(db)
    return {"expired_count": expired}


@router.get("/{entry_id}", response_model=WaitlistEntryResponse)
async def get_waitlist_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.CUSTOMER)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    entry: WaitlistEntry = await service.get_entry(db, entry_id)
    _ensure_own_entry(actor, entry.customer_id)
    return entry


@router.patch("/{entry_id}", response_model=WaitlistEntryResponse)
async def update_waitlist_entry(
    entry_id: UUID,
    patch: WaitlistEntryUpdate,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    return await service.update_entry(db, entry_id, patch)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_waitlist_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Response:
    await service.remove_entry(db, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{entry_id}/contact", response_model=WaitlistEntryResponse)
async def mark_contacted(
    entry_id: UUID,
    request: Optional[ContactRequest] = None,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    """
    Record that the customer was reached about an opening
    """
    notes = request.notes if request else None
    return await service.mark_contacted(db, entry_id, notes=notes)


@router.post("/{entry_id}/convert-to-appointment", response_model=ConversionResponse)
async def convert_to_appointment(
    entry_id: UUID,
    request: ConvertToAppointmentRequest,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    """
    Book the waitlisted customer into a slot.

    Exactly one of several concurrent conversions of the same entry
    succeeds; the others get 409.
    """
    entry, appointment = await service.convert_to_appointment(
        db,
        entry_id,
        scheduled_start=request.scheduled_start,
        scheduled_end=request.scheduled_end,
        salon_employee_id=request.salon_employee_id,
        notes=request.notes,
    )
    logger.info(f"Actor {actor.id} converted waitlist entry {entry.id} to appointment {appointment.id}")
    return ConversionResponse(
        waitlist_entry=WaitlistEntryResponse.model_validate(entry),
        appointment=AppointmentResponse.model_validate(appointment),
    )


@router.post("/{entry_id}/cancel", response_model=WaitlistEntryResponse)
async def cancel_waitlist_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE)),
    service: WaitlistService = Depends(get_waitlist_service),
) -> Any:
    return await service.cancel_entry(db, entry_id)
