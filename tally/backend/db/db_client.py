import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4
import asyncpg
from datetime import datetime, timezone
from ..models.db_models import AttendanceLog, SubjectTotal, CatalogEntry, Profile

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

_TOTAL_COLUMNS = "student_id, subject, count, total"
_LOG_COLUMNS = "id, student_id, subject, date, note"


class AsyncPostgresClient:
    """
    PostgreSQL client for the attendance ledger and the per-subject totals.

    Every operation that touches both the ledger and the counter runs in a single
    transaction and changes the counter relatively (count = count +/- 1) on the
    server. Lock order is always attendance_totals row first, ledger rows second.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def create_schema(self):
        """Creates the tables if they are missing."""
        async with self._pool.acquire() as connection:
            await connection.execute(SCHEMA_PATH.read_text(encoding="utf-8"))

    # ===== Catalog =====

    async def add_catalog_entries(self, entries: List[CatalogEntry]):
        """Inserts reference subjects. Existing codes are left untouched."""
        if not entries:
            return
        query = """
            INSERT INTO subjects_catalog (code, name, default_total)
            VALUES ($1, $2, $3)
            ON CONFLICT (code) DO NOTHING;
        """
        async with self._pool.acquire() as connection:
            await connection.executemany(query, [(e.code, e.name, e.default_total) for e in entries])

    async def get_catalog_entries(self, codes: List[str]) -> List[CatalogEntry]:
        """Returns the catalog rows for the given codes, unknown codes are skipped."""
        if not codes:
            return []
        query = "SELECT code, name, default_total FROM subjects_catalog WHERE code = ANY($1);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, codes)
            return [CatalogEntry(**record) for record in records]

    async def get_catalog_entry(self, code: str) -> Optional[CatalogEntry]:
        entries = await self.get_catalog_entries([code])
        return entries[0] if entries else None

    # ===== Totals =====

    async def query_totals(self, student_id: str) -> List[SubjectTotal]:
        """All counters of a student, ordered by subject code."""
        query = f"SELECT {_TOTAL_COLUMNS} FROM attendance_totals WHERE student_id = $1 ORDER BY subject;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_id)
            return [SubjectTotal(**record) for record in records]

    async def add_total(self, student_id: str, subject: str, total: int) -> Optional[SubjectTotal]:
        """
        Creates a counter with count = 0 and appends the subject to the student's
        profile in the same transaction. Returns None when the pair already exists,
        the existing row is never modified.
        """
        query = f"""
            INSERT INTO attendance_totals (student_id, subject, count, total)
            VALUES ($1, $2, 0, $3)
            ON CONFLICT (student_id, subject) DO NOTHING
            RETURNING {_TOTAL_COLUMNS};
        """
        profile_query = """
            UPDATE profiles SET selected_subjects = array_append(selected_subjects, $2::TEXT)
            WHERE user_id = $1 AND NOT ($2::TEXT = ANY(selected_subjects));
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                record = await connection.fetchrow(query, student_id, subject, total)
                if record is None:
                    return None
                await connection.execute(profile_query, student_id, subject)
                return SubjectTotal(**record)

    async def update_total(self, student_id: str, subject: str, total: int) -> Optional[SubjectTotal]:
        """Overwrites 'total' only. Returns None when the pair does not exist."""
        query = f"""
            UPDATE attendance_totals SET total = $3
            WHERE student_id = $1 AND subject = $2
            RETURNING {_TOTAL_COLUMNS};
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, subject, total)
            return SubjectTotal(**record) if record else None

    async def upsert_total(self, student_id: str, subject: str, total: int) -> SubjectTotal:
        """Creates the counter or overwrites its 'total'; 'count' is never touched."""
        async with self._pool.acquire() as connection:
            return await self._upsert_total(connection, student_id, subject, total)

    async def increment_total(self, student_id: str, subject: str, delta: int) -> Optional[SubjectTotal]:
        """Applies +1/-1 to 'count' on the server, a decrement stops at 0."""
        if delta not in (1, -1):
            raise ValueError(f"delta must be +1 or -1, got {delta!r}")
        async with self._pool.acquire() as connection:
            return await self._apply_delta(connection, student_id, subject, delta)

    async def recount_totals(self, student_id: Optional[str] = None) -> List[SubjectTotal]:
        """
        Re-derives 'count' from the ledger and fixes every row that drifted.
        With student_id=None all students are scanned. Only repaired rows are returned.
        """
        lock_query = """
            SELECT 1 FROM attendance_totals
            WHERE $1::text IS NULL OR student_id = $1
            FOR UPDATE;
        """
        repair_query = f"""
            UPDATE attendance_totals t
            SET count = c.n
            FROM (
                SELECT t2.student_id, t2.subject, count(a.id)::int AS n
                FROM attendance_totals t2
                LEFT JOIN attendance a
                    ON a.student_id = t2.student_id AND a.subject = t2.subject
                WHERE $1::text IS NULL OR t2.student_id = $1
                GROUP BY t2.student_id, t2.subject
            ) c
            WHERE t.student_id = c.student_id AND t.subject = c.subject AND t.count <> c.n
            RETURNING t.student_id, t.subject, t.count, t.total;
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(lock_query, student_id)
                records = await connection.fetch(repair_query, student_id)
        repaired = sorted((SubjectTotal(**record) for record in records), key=lambda t: (t.student_id, t.subject))
        if repaired:
            logger.warning(f"Recount repaired {len(repaired)} drifted counter(s).")
        return repaired

    # ===== Ledger =====

    async def query_logs(self, student_id: str) -> List[AttendanceLog]:
        """Attendance history of a student, newest first."""
        query = f"SELECT {_LOG_COLUMNS} FROM attendance WHERE student_id = $1 ORDER BY date DESC, id;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_id)
            return [AttendanceLog(**record) for record in records]

    async def insert_log_and_increment(
        self, student_id: str, subject: str, note: Optional[str]
    ) -> Tuple[Optional[AttendanceLog], Optional[SubjectTotal]]:
        """
        Appends a ledger row and increments the counter in one transaction.

        Returns (log, updated_total) on success. Nothing is written when the
        counter row is missing, (None, None), or already at its cap, (None, current).
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                record = await connection.fetchrow(
                    f"SELECT {_TOTAL_COLUMNS} FROM attendance_totals "
                    "WHERE student_id = $1 AND subject = $2 FOR UPDATE;",
                    student_id, subject
                )
                if record is None:
                    return None, None
                current = SubjectTotal(**record)
                if current.total > 0 and current.count >= current.total:
                    return None, current

                log_record = await connection.fetchrow(
                    f"""
                    INSERT INTO attendance (id, student_id, subject, date, note)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING {_LOG_COLUMNS};
                    """,
                    uuid4(), student_id, subject, datetime.now(timezone.utc), note
                )
                updated = await self._apply_delta(connection, student_id, subject, 1)
                return AttendanceLog(**log_record), updated

    async def delete_log_and_decrement(self, student_id: str, log_id: UUID) -> Optional[AttendanceLog]:
        """
        Removes a ledger row owned by student_id and decrements its counter in one
        transaction. Returns the removed row, or None if there was nothing to remove.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                subject = await connection.fetchval(
                    "SELECT subject FROM attendance WHERE id = $1 AND student_id = $2;",
                    log_id, student_id
                )
                if subject is None:
                    return None
                await connection.execute(
                    "SELECT 1 FROM attendance_totals WHERE student_id = $1 AND subject = $2 FOR UPDATE;",
                    student_id, subject
                )
                log_record = await connection.fetchrow(
                    f"DELETE FROM attendance WHERE id = $1 AND student_id = $2 RETURNING {_LOG_COLUMNS};",
                    log_id, student_id
                )
                if log_record is None:
                    # Lost the race against another delete of the same row.
                    return None
                await self._apply_delta(connection, student_id, subject, -1)
                return AttendanceLog(**log_record)

    # ===== Onboarding =====

    async def complete_onboarding(self, profile: Profile, totals: Dict[str, int]) -> List[SubjectTotal]:
        """Writes the profile and every requested counter in one transaction."""
        query = """
            INSERT INTO profiles (user_id, name, selected_subjects)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id) DO UPDATE SET
                name = EXCLUDED.name,
                selected_subjects = ARRAY(
                    SELECT DISTINCT s FROM unnest(profiles.selected_subjects || EXCLUDED.selected_subjects) AS s
                    ORDER BY s
                );
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(query, profile.user_id, profile.name, profile.selected_subjects)
                rows = [
                    await self._upsert_total(connection, profile.user_id, subject, total)
                    for subject, total in sorted(totals.items())
                ]
        return rows

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        query = "SELECT user_id, name, selected_subjects FROM profiles WHERE user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return Profile(**record) if record else None

    # ===== Helpers sharing the caller's connection =====

    async def _apply_delta(self, connection, student_id: str, subject: str, delta: int) -> Optional[SubjectTotal]:
        record = await connection.fetchrow(
            f"""
            UPDATE attendance_totals SET count = GREATEST(count + $3, 0)
            WHERE student_id = $1 AND subject = $2
            RETURNING {_TOTAL_COLUMNS};
            """,
            student_id, subject, delta
        )
        return SubjectTotal(**record) if record else None

    async def _upsert_total(self, connection, student_id: str, subject: str, total: int) -> SubjectTotal:
        record = await connection.fetchrow(
            f"""
            INSERT INTO attendance_totals (student_id, subject, count, total)
            VALUES ($1, $2, 0, $3)
            ON CONFLICT (student_id, subject) DO UPDATE SET total = EXCLUDED.total
            RETURNING {_TOTAL_COLUMNS};
            """,
            student_id, subject, total
        )
        return SubjectTotal(**record)
