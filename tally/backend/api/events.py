import logging
from enum import Enum
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..db.redis_client import RedisClient
from .schemas.user import StudentIdentity
from .auth import get_current_user
from .dependencies import get_redis_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Change Notifications"])


class ChangeTableName(str, Enum):
    attendance = "attendance"
    attendance_totals = "attendance_totals"


async def change_event_stream(request: Request, redis_client: RedisClient, student_id: str, table: str):
    """Formats change events as Server-Sent Events until the client goes away."""
    yield ": subscribed\n\n"
    async for change in redis_client.subscribe_changes(student_id, table):
        if await request.is_disconnected():
            break
        yield f"event: change\ndata: {change.model_dump_json()}\n\n"


@router.get("/{table}", summary="Subscribe to changes of my data")
async def subscribe_to_changes(
    request: Request,
    table: ChangeTableName,
    user: StudentIdentity = Depends(get_current_user),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """
    Streams a `change` event whenever the caller's rows in `table` are modified.
    Clients should re-fetch the authoritative state on every event; any optimistic
    local patch is provisional and is replaced by that fetch.
    """
    logger.info(f"Student '{user.student_id}' subscribed to '{table.value}' changes.")
    return StreamingResponse(
        change_event_stream(request, redis_client, user.student_id, table.value),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
