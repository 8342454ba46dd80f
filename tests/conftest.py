# tests/conftest.py
import asyncio
import os
import sys

# Settings are read at import time, so the test values must be in place first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-lecture-tally-suite-0123456789")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("RATE_LIMITER_REDIS_URL", "memory://")

# Windows needs the selector loop for asyncpg under pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
