"""
Persistence for waitlist entries

The store only flushes; callers own the transaction boundary.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Collection, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from salon_waitlist.config import settings
from salon_waitlist.core.exceptions import NotFoundError
from salon_waitlist.models.base import utcnow
from salon_waitlist.models.waitlist import WaitlistEntry, WaitlistStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaitlistFilter:
    """
    Optional query criteria; unset fields do not constrain the query.

    `eligible_at` keeps only entries that have not expired at that instant.
    """
    salon_id: Optional[UUID] = None
    status: Optional[WaitlistStatus] = None
    service_id: Optional[UUID] = None
    eligible_at: Optional[datetime] = None

    def apply(self, stmt):
        if self.salon_id is not None:
            stmt = stmt.where(WaitlistEntry.salon_id == self.salon_id)
        if self.status is not None:
            stmt = stmt.where(WaitlistEntry.status == self.status)
        if self.service_id is not None:
            stmt = stmt.where(WaitlistEntry.service_id == self.service_id)
        if self.eligible_at is not None:
            stmt = stmt.where(
                or_(
                    WaitlistEntry.expires_at.is_(None),
                    WaitlistEntry.expires_at > self.eligible_at,
                )
            )
        return stmt


# Serving order: most urgent first, then oldest request; id makes it total
SERVING_ORDER = (
    WaitlistEntry.priority.desc(),
    WaitlistEntry.created_at.asc(),
    WaitlistEntry.id.asc(),
)


class WaitlistStore:
    """
    Keyed CRUD over waitlist entries plus the conditional updates the
    state machine relies on
    """

    def __init__(self, default_expiry_days: int = None):
        self.default_expiry_days = (
            default_expiry_days
            if default_expiry_days is not None
            else settings.WAITLIST_DEFAULT_EXPIRY_DAYS
        )

    async def create(self, db: AsyncSession, values: Dict[str, Any], now: datetime = None) -> WaitlistEntry:
        now = now or utcnow()
        values = dict(values)
        if values.get("expires_at") is None:
            values["expires_at"] = now + timedelta(days=self.default_expiry_days)
        if values.get("priority") is None:
            values["priority"] = 0
        if values.get("flexible") is None:
            values["flexible"] = True
        values["status"] = WaitlistStatus.PENDING
        values.pop("appointment_id", None)

        entry = WaitlistEntry(created_at=now, updated_at=now, **values)
        db.add(entry)
        await db.flush()
        return entry

    async def get(self, db: AsyncSession, entry_id: UUID, for_update: bool = False) -> WaitlistEntry:
        stmt = select(WaitlistEntry).where(WaitlistEntry.id == entry_id)
        if for_update:
            # Row lock on PostgreSQL; also discard any stale identity-map copy
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Waitlist entry", entry_id)
        return entry

    async def get_status(self, db: AsyncSession, entry_id: UUID) -> Optional[WaitlistStatus]:
        """Current stored status, bypassing the identity map"""
        result = await db.execute(
            select(WaitlistEntry.status).where(WaitlistEntry.id == entry_id)
        )
        return result.scalar_one_or_none()

    async def list(self, db: AsyncSession, criteria: WaitlistFilter = WaitlistFilter()) -> List[WaitlistEntry]:
        stmt = criteria.apply(select(WaitlistEntry)).order_by(*SERVING_ORDER)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def first(self, db: AsyncSession, criteria: WaitlistFilter) -> Optional[WaitlistEntry]:
        stmt = criteria.apply(select(WaitlistEntry)).order_by(*SERVING_ORDER).limit(1)
        result = await db.execute(stmt)
        return result.scalars().first()

    async def update(self, db: AsyncSession, entry_id: UUID, patch: Dict[str, Any]) -> WaitlistEntry:
        entry = await self.get(db, entry_id)
        for field, value in patch.items():
            setattr(entry, field, value)
        await db.flush()
        return entry

    async def remove(self, db: AsyncSession, entry_id: UUID) -> None:
        result = await db.execute(
            delete(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Waitlist entry", entry_id)

    async def compare_and_set(
        self,
        db: AsyncSession,
        entry_id: UUID,
        expected: Collection[WaitlistStatus],
        values: Dict[str, Any],
    ) -> bool:
        """
        Apply `values` only if the stored status is one of `expected`.

        A single conditional UPDATE: of two racing writers at most one
        matches the row. Returns True if this caller won.
        """
        result = await db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry_id,
                WaitlistEntry.status.in_(list(expected)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def expire_overdue(self, db: AsyncSession, now: datetime) -> int:
        result = await db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.status == WaitlistStatus.PENDING,
                WaitlistEntry.expires_at.is_not(None),
                WaitlistEntry.expires_at <= now,
            )
            .values(status=WaitlistStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
