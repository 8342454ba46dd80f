from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

import jwt

from ..config.config import settings
from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Profile, SubjectTotal
from ..models.redis_models import PendingOnboardingRedis, PendingSubject
from ..tools.tokens import create_signed_token, decode_signed_token
from .errors import InvalidValue, NotFound, UnknownSubject, storage_guard
from .projection import DEFAULT_TOTAL, coerce_total

ONBOARDING_TOKEN_TYPE = "onboarding"


class OnboardingService:
    """
    Two-step signup: the chosen subjects are parked server-side until the student
    has verified their e-mail, then written in one transaction.

    The client only ever holds a signed token naming the pending record, so the
    data crossing the verification boundary cannot be altered by the client.
    """
    def __init__(
        self,
        redis_client: RedisClient,
        db_client: AsyncPostgresClient,
        ttl_seconds: Optional[int] = None,
    ):
        self.redis_client = redis_client
        self.db_client = db_client
        self.ttl_seconds = ttl_seconds or settings.ONBOARDING_TTL_SECONDS

    async def _resolve_subjects(self, subjects: Sequence[Tuple[str, Any]]) -> List[PendingSubject]:
        codes = list(dict.fromkeys(code for code, _ in subjects))
        catalog = {entry.code: entry for entry in await self.db_client.get_catalog_entries(codes)}
        unknown = [code for code in codes if code not in catalog]
        if unknown:
            raise UnknownSubject(f"Unknown subject(s): {', '.join(unknown)}.")

        resolved: Dict[str, int] = {}
        for code, total in subjects:
            if total is None:
                default = catalog[code].default_total
                resolved[code] = default if default is not None else DEFAULT_TOTAL
            else:
                resolved[code] = coerce_total(total)
        return [PendingSubject(code=code, total=total) for code, total in resolved.items()]

    @storage_guard
    async def begin(self, name: str, subjects: Sequence[Tuple[str, Any]]) -> str:
        """
        Parks the signup data and returns the signed token the client must present
        after verification. subjects is a sequence of (code, total or None).
        """
        name = (name or "").strip()
        if not name:
            raise InvalidValue("Name must not be empty.")
        if not subjects:
            raise InvalidValue("Pick at least one subject.")

        pending = PendingOnboardingRedis(
            pending_id=uuid4(),
            name=name,
            subjects=await self._resolve_subjects(subjects),
            created_at=datetime.now(timezone.utc),
        )
        await self.redis_client.save_pending_onboarding(pending, ttl=self.ttl_seconds)

        return create_signed_token(
            {"pending_id": str(pending.pending_id), "typ": ONBOARDING_TOKEN_TYPE},
            expires_delta=timedelta(seconds=self.ttl_seconds),
        )

    def _pending_id_from_token(self, token: str) -> UUID:
        try:
            claims = decode_signed_token(token)
        except jwt.PyJWTError as e:
            raise InvalidValue("The onboarding token is invalid or has expired.") from e
        if claims.get("typ") != ONBOARDING_TOKEN_TYPE:
            raise InvalidValue("The onboarding token is invalid or has expired.")
        try:
            return UUID(str(claims.get("pending_id")))
        except ValueError as e:
            raise InvalidValue("The onboarding token is invalid or has expired.") from e

    @storage_guard
    async def complete(self, student_id: str, token: str) -> List[SubjectTotal]:
        """Writes the profile and the chosen subjects for the now verified student."""
        pending_id = self._pending_id_from_token(token)
        taken = await self.redis_client.take_pending_onboarding(pending_id)
        if taken is None:
            raise NotFound("No pending onboarding for this token, it may have been completed already.")
        pending, ttl = taken

        try:
            # The catalog may have changed while the e-mail was unverified.
            subjects = await self._resolve_subjects([(s.code, s.total) for s in pending.subjects])
            totals = {s.code: s.total for s in subjects}
            profile = Profile(user_id=student_id, name=pending.name, selected_subjects=sorted(totals))
            rows = await self.db_client.complete_onboarding(profile, totals)
        except Exception:
            # Nothing was written, restore the record.
            await self.redis_client.save_pending_onboarding(pending, ttl=max(ttl, 1))
            raise
        await self.redis_client.publish_change(student_id, "attendance_totals", "UPDATE")
        return rows
