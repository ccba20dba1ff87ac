"""
Tests for the expiration sweep
"""

import pytest
from datetime import timedelta
from unittest.mock import patch

from salon_waitlist.models.waitlist import WaitlistStatus


@pytest.mark.asyncio
class TestSweepExpired:

    async def test_overdue_pending_entry_expires(self, waitlist, db_session, make_entry, salon_id, clock):
        overdue = await make_entry(expires_at=clock.now - timedelta(hours=1))
        assert await waitlist.select_next(db_session, salon_id) is None

        expired = await waitlist.sweep_expired(db_session)

        assert expired == 1
        stored = await waitlist.get_entry(db_session, overdue.id)
        await db_session.refresh(stored)
        assert stored.status == WaitlistStatus.EXPIRED

    async def test_second_sweep_is_a_no_op(self, waitlist, db_session, make_entry, clock):
        for _ in range(3):
            await make_entry(expires_at=clock.now - timedelta(minutes=1))
        await make_entry()

        assert await waitlist.sweep_expired(db_session) == 3
        assert await waitlist.sweep_expired(db_session) == 0

    async def test_expiry_at_exactly_now_is_swept(self, waitlist, db_session, make_entry, clock):
        entry = await make_entry(expires_at=clock.now + timedelta(minutes=10))
        clock.now = entry.expires_at

        assert await waitlist.sweep_expired(db_session) == 1

    async def test_only_pending_entries_are_swept(self, waitlist, db_session, make_entry, clock):
        contacted = await make_entry(expires_at=clock.now + timedelta(minutes=1))
        cancelled = await make_entry(expires_at=clock.now + timedelta(minutes=1))
        await waitlist.mark_contacted(db_session, contacted.id)
        await waitlist.cancel_entry(db_session, cancelled.id)
        clock.advance(hours=1)

        assert await waitlist.sweep_expired(db_session) == 0
        assert (await waitlist.get_entry(db_session, contacted.id)).status == WaitlistStatus.CONTACTED
        assert (await waitlist.get_entry(db_session, cancelled.id)).status == WaitlistStatus.CANCELLED

    async def test_sweep_sends_no_notifications(self, waitlist, db_session, make_entry, clock, notifier):
        await make_entry(expires_at=clock.now - timedelta(days=1))

        await waitlist.sweep_expired(db_session)

        notifier.send_notification.assert_not_awaited()

    async def test_sweep_counts_expired_entries(self, waitlist, db_session, make_entry, clock):
        await make_entry(expires_at=clock.now - timedelta(days=1))
        await make_entry(expires_at=clock.now - timedelta(days=2))

        with patch("salon_waitlist.services.waitlist_service.WAITLIST_EXPIRED") as expired_metric:
            await waitlist.sweep_expired(db_session)

        expired_metric.inc.assert_called_once_with(2)


@pytest.mark.asyncio
class TestExpireWaitlistTask:
    """Cron entry point"""

    async def test_run_sweep(self, waitlist, session_factory, make_entry, clock):
        from salon_waitlist.core.database import DatabaseManager
        from salon_waitlist.tasks import expire_waitlist

        await make_entry(expires_at=clock.now - timedelta(hours=3))

        with patch.object(expire_waitlist, "waitlist_service", waitlist), \
                patch.object(expire_waitlist, "db_manager", DatabaseManager(session_factory)):
            assert await expire_waitlist.run_sweep() == 1

    async def test_main_reports_failure(self):
        from unittest.mock import AsyncMock
        from salon_waitlist.tasks import expire_waitlist

        with patch.object(expire_waitlist, "run_sweep", AsyncMock(side_effect=RuntimeError("db down"))), \
                patch.object(expire_waitlist, "close_db", AsyncMock()) as close_mock:
            assert await expire_waitlist.main() == 1

        close_mock.assert_awaited_once()
