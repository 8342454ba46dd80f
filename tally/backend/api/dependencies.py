#tally/backend/api/dependencies.py
import logging
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.ledger_service import LedgerService
from ..services.totals_service import TotalsService
from ..services.onboarding_service import OnboardingService
from ..services.profile_service import ProfileService
from ..services.errors import StorageUnavailable
from .utilities.errors import to_http_exception

logger = logging.getLogger(__name__)


def _require_pool(request: Request, name: str):
    # The lifespan leaves the pool unset when startup could not reach the store.
    pool = getattr(request.app.state, name, None)
    if pool is None:
        logger.error(f"Request to {request.url.path} refused, '{name}' was not created at startup.")
        raise to_http_exception(StorageUnavailable("The attendance store is currently unavailable."))
    return pool


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """Returns the Redis connection pool created during application startup."""
    return _require_pool(request, "redis_pool")

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """Returns the PostgreSQL connection pool created during application startup."""
    return _require_pool(request, "postgres_pool")


def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)

def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_ledger_service(
    redis_client: RedisClient = Depends(get_redis_client),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> LedgerService:
    """
    Builds a LedgerService per request on top of the shared pools.
    The clients are cheap wrappers, the pools are created once in the lifespan.
    """
    return LedgerService(redis_client=redis_client, db_client=db_client)


def get_totals_service(
    redis_client: RedisClient = Depends(get_redis_client),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> TotalsService:
    return TotalsService(redis_client=redis_client, db_client=db_client)


def get_onboarding_service(
    redis_client: RedisClient = Depends(get_redis_client),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> OnboardingService:
    return OnboardingService(redis_client=redis_client, db_client=db_client)


def get_profile_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> ProfileService:
    return ProfileService(db_client=db_client)
