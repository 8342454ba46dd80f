# tally/backend/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
import redis.asyncio as redis
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fastapi.middleware.cors import CORSMiddleware

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import attendance, totals, events, onboarding, profile

from .db.redis_client import RedisClient
from .db.db_client import AsyncPostgresClient
from .tasks.cron import reconcile_counts_task

from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the shared PostgreSQL/Redis pools and the reconciliation scheduler on
    startup and closes them on shutdown.
    """
    setup_logging()
    logger.info("Starting application...")

    app.state.postgres_pool = None
    app.state.redis_pool = None
    app.state.scheduler = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL,
            min_size=settings.DB_MIN_POOL_SIZE,
            max_size=settings.DB_MAX_POOL_SIZE,
            command_timeout=settings.DB_COMMAND_TIMEOUT_SECONDS,
        )
        redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )
        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis_pool
        logger.info("PostgreSQL and Redis connection pools created.")

        db_client = AsyncPostgresClient(pool=postgres_pool)
        redis_client = RedisClient(pool=redis_pool)
        await db_client.create_schema()

        scheduler = Scheduler()
        scheduler.add_job(
            reconcile_counts_task,
            "interval",
            minutes=settings.RECONCILE_INTERVAL_MINUTES,
            args=[redis_client, db_client],
            id="reconcile_counts",
        )
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Reconciliation job scheduled.")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)

    yield

    logger.info("Shutting down application...")
    if app.state.scheduler:
        app.state.scheduler.shutdown()
        logger.info("Scheduler stopped.")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if app.state.redis_pool:
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="Lecture Tally API",
    description="Per-subject attendance ledger and totals for students",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(attendance.router, prefix="/api/v1")
app.include_router(totals.router, prefix="/api/v1")
app.include_router(events.router, prefix="/api/v1")
app.include_router(onboarding.router, prefix="/api/v1")
app.include_router(profile.router, prefix="/api/v1")

@app.get("/health", tags=["System"])
def health_check():
    """Liveness check."""
    return {"status": "ok", "message": "Lecture Tally API is running."}
