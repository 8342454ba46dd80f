from typing import Any, List, Optional

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import SubjectTotal
from .errors import AlreadyExists, NotConfigured, UnknownSubject, storage_guard
from .projection import DEFAULT_TOTAL, coerce_total


class TotalsService:
    """
    Manages the per-subject counters of a student: adding subjects, editing the
    scheduled lecture count and repairing counters that drifted from the ledger.
    The count itself is only ever moved by the ledger.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient):
        self.redis_client = redis_client
        self.db_client = db_client

    @storage_guard
    async def list_totals(self, student_id: str) -> List[SubjectTotal]:
        return await self.db_client.query_totals(student_id)

    @storage_guard
    async def add_subject(self, student_id: str, subject: str, initial_total: Optional[Any] = None) -> SubjectTotal:
        """
        Starts tracking a catalog subject with count = 0. Without an explicit
        total, the catalog's default lecture count is used.
        """
        entry = await self.db_client.get_catalog_entry(subject)
        if entry is None:
            raise UnknownSubject(f"Subject '{subject}' is not in the catalog.")

        if initial_total is None:
            total = entry.default_total if entry.default_total is not None else DEFAULT_TOTAL
        else:
            total = coerce_total(initial_total)

        created = await self.db_client.add_total(student_id, subject, total)
        if created is None:
            raise AlreadyExists(f"Subject '{subject}' has already been added.")

        await self.redis_client.publish_change(student_id, "attendance_totals", "INSERT", subject)
        return created

    @storage_guard
    async def set_total(self, student_id: str, subject: str, new_total: Any) -> SubjectTotal:
        """
        Overwrites the scheduled lecture count. It may go below the current count;
        the display projection clamps instead.
        """
        total = coerce_total(new_total)
        updated = await self.db_client.update_total(student_id, subject, total)
        if updated is None:
            raise NotConfigured(f"Subject '{subject}' has not been added for this student.")

        await self.redis_client.publish_change(student_id, "attendance_totals", "UPDATE", subject)
        return updated

    @storage_guard
    async def reconcile(self, student_id: str) -> List[SubjectTotal]:
        """Re-derives every count of the student from the ledger, returns the repaired rows."""
        repaired = await self.db_client.recount_totals(student_id)
        for row in repaired:
            await self.redis_client.publish_change(student_id, "attendance_totals", "UPDATE", row.subject)
        return repaired
