"""
Expire overdue waitlist entries

Run from cron:
    python -m salon_waitlist.tasks.expire_waitlist
"""

import asyncio
import logging
import sys

from salon_waitlist.core.database import close_db, db_manager
from salon_waitlist.core.logging import setup_logging
from salon_waitlist.services.waitlist_service import waitlist_service

logger = logging.getLogger(__name__)


async def run_sweep() -> int:
    async with db_manager.session_factory() as db:
        return await waitlist_service.sweep_expired(db)


async def main() -> int:
    try:
        expired = await run_sweep()
    except Exception as e:
        logger.error(f"Waitlist expiration sweep failed: {e}", exc_info=True)
        return 1
    finally:
        await close_db()

    print(f"Expired {expired} waitlist entries")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
