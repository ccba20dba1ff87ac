"""
Waitlist engine: entry lifecycle, next-customer selection, conversion of
an entry into an appointment, and expiration sweeps
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from salon_waitlist.config import settings
from salon_waitlist.core.database import DatabaseManager, db_manager
from salon_waitlist.core.exceptions import (
    CollaboratorFailure,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    SalonWaitlistException,
    ValidationError,
)
from salon_waitlist.core.metrics import NOTIFICATION_FAILURES, WAITLIST_CONVERSIONS, WAITLIST_EXPIRED
from salon_waitlist.models.appointment import Appointment
from salon_waitlist.models.base import utcnow
from salon_waitlist.models.notification import NotificationChannel, NotificationType
from salon_waitlist.models.waitlist import (
    OPEN_STATUSES,
    WaitlistEntry,
    WaitlistStatus,
    can_transition,
)
from salon_waitlist.schemas.waitlist import WaitlistEntryCreate, WaitlistEntryUpdate
from salon_waitlist.services.appointment_service import AppointmentService, appointment_service
from salon_waitlist.services.notification_service import NotificationService, notification_service
from salon_waitlist.services.waitlist_store import WaitlistFilter, WaitlistStore

logger = logging.getLogger(__name__)

# Status changes a plain update may request; contacting, booking and expiry have owners
PATCHABLE_STATUSES = frozenset({WaitlistStatus.CANCELLED})


def append_notes(existing: Optional[str], addition: Optional[str]) -> Optional[str]:
    if not addition:
        return existing
    return f"{existing}\n\n{addition}" if existing else addition


class WaitlistService:
    """
    Waitlist operations over a caller-supplied session.

    Status changes go through WaitlistStore.compare_and_set so a write based
    on a stale read can never move an entry out of a terminal state.
    """

    def __init__(
        self,
        store: Optional[WaitlistStore] = None,
        appointments: Optional[AppointmentService] = None,
        notifier: Optional[NotificationService] = None,
        database: Optional[DatabaseManager] = None,
        clock: Callable[[], datetime] = utcnow,
        appointment_timeout: Optional[float] = None,
    ):
        self.store = store or WaitlistStore()
        self.appointments = appointments or appointment_service
        self.notifier = notifier or notification_service
        self.db_manager = database or db_manager
        self.clock = clock
        self.appointment_timeout = (
            appointment_timeout
            if appointment_timeout is not None
            else settings.APPOINTMENT_CREATE_TIMEOUT_SECONDS
        )
        self.logger = logging.getLogger(__name__)
        self.notification_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry store operations
    # ------------------------------------------------------------------

    async def create_entry(self, db: AsyncSession, data: WaitlistEntryCreate) -> WaitlistEntry:
        async with self.db_manager.transaction(db):
            entry = await self.store.create(db, data.model_dump(), now=self.clock())

        self.logger.info(
            f"Waitlist entry {entry.id} created for customer {entry.customer_id} "
            f"at salon {entry.salon_id} (priority {entry.priority})"
        )
        return entry

    async def list_entries(
        self,
        db: AsyncSession,
        salon_id: Optional[UUID] = None,
        status: Optional[WaitlistStatus] = None,
    ) -> List[WaitlistEntry]:
        return await self.store.list(db, WaitlistFilter(salon_id=salon_id, status=status))

    async def get_entry(self, db: AsyncSession, entry_id: UUID) -> WaitlistEntry:
        return await self.store.get(db, entry_id)

    async def update_entry(self, db: AsyncSession, entry_id: UUID, patch: WaitlistEntryUpdate) -> WaitlistEntry:
        values = patch.model_dump(exclude_unset=True)

        async with self.db_manager.transaction(db):
            entry = await self.store.get(db, entry_id, for_update=True)
            requested = values.get("status")
            if entry.is_terminal:
                raise InvalidStateTransitionError(
                    entry.status.value,
                    WaitlistStatus(requested).value if requested is not None else "updated",
                )

            if requested is not None:
                requested = WaitlistStatus(requested)
                if requested not in PATCHABLE_STATUSES or not can_transition(entry.status, requested):
                    raise InvalidStateTransitionError(entry.status.value, requested.value)
                values["status"] = requested

            # The patch may carry one end of the window; check it against the stored other end
            start = values.get("preferred_time_start", entry.preferred_time_start)
            end = values.get("preferred_time_end", entry.preferred_time_end)
            if start and end and end <= start:
                raise ValidationError(
                    "preferred_time_end must be after preferred_time_start",
                    field="preferred_time_end",
                )

            if values:
                won = await self.store.compare_and_set(db, entry.id, OPEN_STATUSES, values)
                if not won:
                    await self._raise_lost_race(db, entry.id, values.get("status", entry.status))

        await db.refresh(entry)
        return entry

    async def remove_entry(self, db: AsyncSession, entry_id: UUID) -> None:
        async with self.db_manager.transaction(db):
            entry = await self.store.get(db, entry_id, for_update=True)
            await self.store.remove(db, entry.id)
            db.expunge(entry)

        self.logger.info(f"Waitlist entry {entry_id} removed")

    # ------------------------------------------------------------------
    # State machine actions
    # ------------------------------------------------------------------

    async def cancel_entry(self, db: AsyncSession, entry_id: UUID) -> WaitlistEntry:
        async with self.db_manager.transaction(db):
            entry = await self.store.get(db, entry_id, for_update=True)
            self._ensure_mutable(entry, WaitlistStatus.CANCELLED)
            won = await self.store.compare_and_set(
                db, entry.id, OPEN_STATUSES, {"status": WaitlistStatus.CANCELLED}
            )
            if not won:
                await self._raise_lost_race(db, entry.id, WaitlistStatus.CANCELLED)

        await db.refresh(entry)
        self.logger.info(f"Waitlist entry {entry.id} cancelled")
        return entry

    async def mark_contacted(self, db: AsyncSession, entry_id: UUID, notes: Optional[str] = None) -> WaitlistEntry:
        async with self.db_manager.transaction(db):
            entry = await self.store.get(db, entry_id, for_update=True)
            self._ensure_mutable(entry, WaitlistStatus.CONTACTED)
            won = await self.store.compare_and_set(
                db,
                entry.id,
                OPEN_STATUSES,
                {
                    "status": WaitlistStatus.CONTACTED,
                    "contacted_at": self.clock(),
                    "notes": append_notes(entry.notes, notes),
                },
            )
            if not won:
                await self._raise_lost_race(db, entry.id, WaitlistStatus.CONTACTED)

        await db.refresh(entry)
        self.logger.info(f"Waitlist entry {entry.id} marked as contacted")

        self._schedule_notification(
            entry,
            appointment_id=None,
            type=NotificationType.WAITLIST_OPPORTUNITY,
            subject="Appointment Opportunity",
            body="We have an appointment opportunity for you. Please contact us to confirm your availability.",
        )
        return entry

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def select_next(
        self,
        db: AsyncSession,
        salon_id: UUID,
        service_id: Optional[UUID] = None,
    ) -> Optional[WaitlistEntry]:
        """
        Highest priority, then oldest, pending entry that has not expired.
        Expiry is checked against the clock, not the stored status.
        """
        return await self.store.first(
            db,
            WaitlistFilter(
                salon_id=salon_id,
                status=WaitlistStatus.PENDING,
                service_id=service_id,
                eligible_at=self.clock(),
            ),
        )

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    async def convert_to_appointment(
        self,
        db: AsyncSession,
        entry_id: UUID,
        scheduled_start: datetime,
        scheduled_end: datetime,
        salon_employee_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> Tuple[WaitlistEntry, Appointment]:
        """
        Create the appointment and book the entry in one transaction.

        The appointment insert and the conditional status update commit
        together; if another caller booked the entry first the update
        matches no row, everything rolls back and ConflictError is raised.
        """
        try:
            async with self.db_manager.transaction(db):
                entry = await self.store.get(db, entry_id, for_update=True)
                self._ensure_mutable(entry, WaitlistStatus.BOOKED)

                appointment = await self._create_appointment(
                    db,
                    entry,
                    scheduled_start=scheduled_start,
                    scheduled_end=scheduled_end,
                    salon_employee_id=salon_employee_id,
                    notes=notes or entry.notes,
                )

                won = await self.store.compare_and_set(
                    db,
                    entry.id,
                    OPEN_STATUSES,
                    {"status": WaitlistStatus.BOOKED, "appointment_id": appointment.id},
                )
                if not won:
                    await self._raise_lost_race(db, entry.id, WaitlistStatus.BOOKED)
        except ConflictError:
            WAITLIST_CONVERSIONS.labels(outcome="conflict").inc()
            raise
        except SalonWaitlistException:
            WAITLIST_CONVERSIONS.labels(outcome="rejected").inc()
            raise

        await db.refresh(entry)
        WAITLIST_CONVERSIONS.labels(outcome="success").inc()
        self.logger.info(f"Waitlist entry {entry.id} converted to appointment {appointment.id}")

        self._schedule_notification(
            entry,
            appointment_id=appointment.id,
            type=NotificationType.APPOINTMENT_CONFIRMED,
            subject="Appointment Available",
            body=(
                "Great news! We have an appointment available for you. "
                f"Your appointment is scheduled for {scheduled_start.strftime('%Y-%m-%d %H:%M %Z')}."
            ),
        )
        return entry, appointment

    async def _create_appointment(self, db: AsyncSession, entry: WaitlistEntry, **schedule) -> Appointment:
        try:
            return await asyncio.wait_for(
                self.appointments.create_appointment(
                    db,
                    customer_id=entry.customer_id,
                    salon_id=entry.salon_id,
                    service_id=entry.service_id,
                    **schedule,
                ),
                timeout=self.appointment_timeout,
            )
        except SalonWaitlistException:
            raise
        except asyncio.TimeoutError:
            raise CollaboratorFailure(
                "appointments",
                f"Appointment creation timed out after {self.appointment_timeout}s",
            )
        except Exception as e:
            self.logger.error(f"Appointment creation failed for waitlist entry {entry.id}: {type(e).__name__}: {e}")
            raise CollaboratorFailure("appointments", f"Appointment creation failed: {e}") from e

    # ------------------------------------------------------------------
    # Expiration
    # ------------------------------------------------------------------

    async def sweep_expired(self, db: AsyncSession) -> int:
        """Mark every pending entry past its expiry as expired"""
        now = self.clock()
        async with self.db_manager.transaction(db):
            count = await self.store.expire_overdue(db, now)

        if count:
            WAITLIST_EXPIRED.inc(count)
        self.logger.info(f"Expiration sweep at {now.isoformat()} expired {count} waitlist entries")
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_mutable(entry: WaitlistEntry, requested: WaitlistStatus) -> None:
        if entry.status == WaitlistStatus.BOOKED and requested == WaitlistStatus.BOOKED:
            raise ConflictError(
                "This waitlist entry has already been converted to an appointment",
                details={"waitlist_id": str(entry.id), "appointment_id": str(entry.appointment_id)},
            )
        if entry.is_terminal:
            raise InvalidStateTransitionError(entry.status.value, WaitlistStatus(requested).value)

    async def _raise_lost_race(self, db: AsyncSession, entry_id: UUID, requested: WaitlistStatus) -> None:
        current = await self.store.get_status(db, entry_id)
        if current is None:
            raise NotFoundError("Waitlist entry", entry_id)
        if current == WaitlistStatus.BOOKED and requested == WaitlistStatus.BOOKED:
            raise ConflictError(
                "This waitlist entry has already been converted to an appointment",
                details={"waitlist_id": str(entry_id)},
            )
        raise InvalidStateTransitionError(current.value, WaitlistStatus(requested).value)

    def _schedule_notification(
        self,
        entry: WaitlistEntry,
        appointment_id: Optional[UUID],
        type: NotificationType,
        subject: str,
        body: str,
    ) -> None:
        """
        Send the notification in the background so the caller gets its
        result without waiting on the email provider. Entry fields are read
        now; the task must not touch the caller's session.
        """
        task = asyncio.create_task(
            self._notify(
                entry_id=entry.id,
                customer_id=entry.customer_id,
                recipient=entry.customer_email,
                appointment_id=appointment_id,
                type=type,
                subject=subject,
                body=body,
            )
        )
        self.notification_tasks.add(task)
        task.add_done_callback(self.notification_tasks.discard)

    async def wait_for_notifications(self) -> None:
        """Wait for notifications still in flight, e.g. before shutdown"""
        if self.notification_tasks:
            await asyncio.gather(*self.notification_tasks, return_exceptions=True)

    async def _notify(
        self,
        entry_id: UUID,
        customer_id: UUID,
        recipient: Optional[str],
        appointment_id: Optional[UUID],
        type: NotificationType,
        subject: str,
        body: str,
    ) -> None:
        """Best-effort: failures are logged and counted, never raised"""
        try:
            await self.notifier.send_notification(
                customer_id=customer_id,
                appointment_id=appointment_id,
                channel=NotificationChannel.EMAIL,
                type=type,
                subject=subject,
                body=body,
                recipient=recipient,
            )
        except Exception as e:
            NOTIFICATION_FAILURES.labels(type=type.value).inc()
            self.logger.error(
                f"Failed to send {type.value} notification for waitlist entry {entry_id}: {e}",
                exc_info=True,
            )


waitlist_service = WaitlistService()


def get_waitlist_service() -> WaitlistService:
    return waitlist_service
