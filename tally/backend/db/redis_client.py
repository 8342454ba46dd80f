import logging
from typing import AsyncIterator, Optional, Tuple
from uuid import UUID
import redis.asyncio as redis
from datetime import datetime, timezone

from ..models.redis_models import ChangeEvent, ChangeKind, ChangeTable, PendingOnboardingRedis

logger = logging.getLogger(__name__)

class RedisClient:
    """
    Redis client for change notifications and pending onboarding records.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== Change Notifications =====

    @staticmethod
    def change_channel(student_id: str, table: ChangeTable) -> str:
        return f"changes:{student_id}:{table}"

    async def publish_change(
        self, student_id: str, table: ChangeTable, event: ChangeKind, subject: Optional[str] = None
    ) -> int:
        """
        Publishes a change event for (student_id, table) and returns the number of
        subscribers reached. Called after the mutation is committed, so a Redis
        failure is logged and reported as 0 instead of failing the caller.
        """
        change = ChangeEvent(
            student_id=student_id,
            table=table,
            event=event,
            subject=subject,
            occurred_at=datetime.now(timezone.utc),
        )
        try:
            return await self._redis.publish(self.change_channel(student_id, table), change.model_dump_json())
        except redis.RedisError as e:
            logger.warning(f"Could not publish {event} on '{table}' for student '{student_id}': {e}")
            return 0

    async def subscribe_changes(self, student_id: str, table: ChangeTable) -> AsyncIterator[ChangeEvent]:
        """Yields change events for (student_id, table) until the consumer stops iterating."""
        channel = self.change_channel(student_id, table)
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield ChangeEvent.model_validate_json(message["data"])
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    # ===== Pending Onboarding =====

    async def save_pending_onboarding(self, pending: PendingOnboardingRedis, ttl: int):
        """Stores the signup data until the e-mail is verified or the TTL runs out."""
        key = f"onboarding:{pending.pending_id}"
        await self._redis.set(key, pending.model_dump_json(), ex=ttl)

    async def take_pending_onboarding(self, pending_id: UUID) -> Optional[Tuple[PendingOnboardingRedis, int]]:
        """
        Reads and deletes the pending record in one MULTI, so a token can be redeemed
        once. Returns the record with its remaining TTL in seconds, or None.
        """
        key = f"onboarding:{pending_id}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.get(key)
            pipe.ttl(key)
            pipe.delete(key)
            pending_json, ttl, _ = await pipe.execute()
        if not pending_json:
            return None
        return PendingOnboardingRedis.model_validate_json(pending_json), ttl
