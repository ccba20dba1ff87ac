"""
Tests for waitlist persistence
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from sqlalchemy import select

from salon_waitlist.core.exceptions import NotFoundError
from salon_waitlist.models.waitlist import OPEN_STATUSES, WaitlistEntry, WaitlistStatus
from salon_waitlist.services.waitlist_store import WaitlistFilter, WaitlistStore


@pytest.mark.asyncio
class TestWaitlistStore:
    """Keyed CRUD and conditional updates"""

    async def test_create_applies_defaults(self, db_session, clock):
        store = WaitlistStore(default_expiry_days=30)
        entry = await store.create(
            db_session,
            {"customer_id": uuid4(), "salon_id": uuid4(), "status": WaitlistStatus.BOOKED},
            now=clock.now,
        )
        await db_session.commit()

        assert entry.status == WaitlistStatus.PENDING
        assert entry.priority == 0
        assert entry.flexible is True
        assert entry.appointment_id is None
        assert entry.created_at == clock.now
        assert entry.expires_at == clock.now + timedelta(days=30)

    async def test_create_keeps_explicit_expiry(self, db_session, clock):
        expiry = clock.now + timedelta(hours=2)
        entry = await WaitlistStore().create(
            db_session,
            {"customer_id": uuid4(), "salon_id": uuid4(), "expires_at": expiry},
            now=clock.now,
        )
        await db_session.commit()
        assert entry.expires_at == expiry

    async def test_get_missing_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await WaitlistStore().get(db_session, uuid4())
        assert exc_info.value.status_code == 404

    async def test_filter_unset_fields_do_not_constrain(self, db_session, clock):
        store = WaitlistStore()
        salon_a, salon_b = uuid4(), uuid4()
        for salon in (salon_a, salon_a, salon_b):
            await store.create(db_session, {"customer_id": uuid4(), "salon_id": salon}, now=clock.now)
        await db_session.commit()

        assert len(await store.list(db_session)) == 3
        assert len(await store.list(db_session, WaitlistFilter(salon_id=salon_a))) == 2
        assert len(await store.list(db_session, WaitlistFilter(status=WaitlistStatus.BOOKED))) == 0

    async def test_filter_eligible_at_keeps_entries_without_expiry(self, db_session, clock):
        store = WaitlistStore()
        salon = uuid4()
        no_expiry = await store.create(db_session, {"customer_id": uuid4(), "salon_id": salon}, now=clock.now)
        no_expiry.expires_at = None
        await store.create(
            db_session,
            {"customer_id": uuid4(), "salon_id": salon, "expires_at": clock.now},
            now=clock.now,
        )
        await db_session.commit()

        eligible = await store.list(db_session, WaitlistFilter(salon_id=salon, eligible_at=clock.now))
        assert [e.id for e in eligible] == [no_expiry.id]

    async def test_compare_and_set_only_from_expected(self, db_session, clock):
        store = WaitlistStore()
        entry = await store.create(db_session, {"customer_id": uuid4(), "salon_id": uuid4()}, now=clock.now)
        await db_session.commit()

        won = await store.compare_and_set(
            db_session, entry.id, OPEN_STATUSES, {"status": WaitlistStatus.CANCELLED}
        )
        await db_session.commit()
        assert won is True

        again = await store.compare_and_set(
            db_session, entry.id, OPEN_STATUSES, {"status": WaitlistStatus.CONTACTED}
        )
        await db_session.commit()
        assert again is False
        assert await store.get_status(db_session, entry.id) == WaitlistStatus.CANCELLED

    async def test_remove(self, db_session, clock):
        store = WaitlistStore()
        entry = await store.create(db_session, {"customer_id": uuid4(), "salon_id": uuid4()}, now=clock.now)
        await db_session.commit()

        await store.remove(db_session, entry.id)
        await db_session.commit()

        result = await db_session.execute(select(WaitlistEntry).where(WaitlistEntry.id == entry.id))
        assert result.scalar_one_or_none() is None

        with pytest.raises(NotFoundError):
            await store.remove(db_session, entry.id)

    async def test_update_merges_patch(self, db_session, clock):
        store = WaitlistStore()
        entry = await store.create(
            db_session, {"customer_id": uuid4(), "salon_id": uuid4(), "notes": "original"}, now=clock.now
        )
        await db_session.commit()

        updated = await store.update(db_session, entry.id, {"priority": 4, "flexible": False})
        await db_session.commit()

        assert updated.priority == 4
        assert updated.flexible is False
        assert updated.notes == "original"

        with pytest.raises(NotFoundError):
            await store.update(db_session, uuid4(), {"priority": 1})
