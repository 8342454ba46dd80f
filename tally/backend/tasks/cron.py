import logging

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient

logger = logging.getLogger(__name__)


async def reconcile_counts_task(redis_client: RedisClient, db_client: AsyncPostgresClient):
    """
    Periodic safety net for the cached counters. Re-derives every 'count' from the
    attendance ledger, repairs rows that drifted and tells open views to re-fetch.
    """
    logger.info("Running reconcile_counts_task...")
    try:
        repaired = await db_client.recount_totals()
    except Exception as e:
        logger.error(f"Counter reconciliation failed: {e}", exc_info=True)
        return

    if not repaired:
        logger.info("All attendance counters match the ledger.")
        return

    for row in repaired:
        logger.warning(f"Repaired counter of student '{row.student_id}' for '{row.subject}': count is now {row.count}.")

    for student_id in sorted({row.student_id for row in repaired}):
        await redis_client.publish_change(student_id, "attendance_totals", "UPDATE")
    logger.info(f"Reconciliation repaired {len(repaired)} counter(s).")
