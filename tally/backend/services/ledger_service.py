from typing import List, Optional
from uuid import UUID

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import AttendanceLog
from .errors import CapacityReached, NotConfigured, NotFound, storage_guard
from .projection import normalize_note


class LedgerService:
    """
    Marks and removes attendance events.

    The ledger row and the subject counter always change together: both happen
    inside one database transaction, and the counter is moved by a relative
    update so two open tabs marking at once cannot lose an increment.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient):
        self.redis_client = redis_client
        self.db_client = db_client

    @storage_guard
    async def record_attendance(self, student_id: str, subject: str, note: Optional[str] = None) -> AttendanceLog:
        """Appends an attendance event for the subject and increments its count."""
        note = normalize_note(note)
        log, current = await self.db_client.insert_log_and_increment(student_id, subject, note)
        if log is None:
            if current is None:
                raise NotConfigured(f"Subject '{subject}' has not been added for this student.")
            raise CapacityReached(f"{subject} is already {current.count}/{current.total}.")

        await self.redis_client.publish_change(student_id, "attendance", "INSERT", subject)
        await self.redis_client.publish_change(student_id, "attendance_totals", "UPDATE", subject)
        return log

    @storage_guard
    async def delete_attendance(self, student_id: str, log_id: UUID) -> None:
        """Removes one of the student's attendance events and decrements its count (never below 0)."""
        removed = await self.db_client.delete_log_and_decrement(student_id, log_id)
        if removed is None:
            raise NotFound("Attendance record not found.")

        await self.redis_client.publish_change(student_id, "attendance", "DELETE", removed.subject)
        await self.redis_client.publish_change(student_id, "attendance_totals", "UPDATE", removed.subject)

    @storage_guard
    async def list_attendance(self, student_id: str) -> List[AttendanceLog]:
        return await self.db_client.query_logs(student_id)
