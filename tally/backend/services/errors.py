import asyncio
from functools import wraps

import asyncpg
import redis.asyncio as redis


class ServiceError(Exception):
    """Base class for every failure the service layer reports to its caller."""
    pass

class NotConfigured(ServiceError):
    """The student has no totals row for the subject."""
    pass

class CapacityReached(ServiceError):
    """Marking would push count past a non-zero total."""
    pass

class InvalidValue(ServiceError):
    pass

class NotFound(ServiceError):
    pass

class UnknownSubject(ServiceError):
    """The subject code is not in the catalog."""
    pass

class AlreadyExists(ServiceError):
    pass

class StorageUnavailable(ServiceError):
    """PostgreSQL or Redis could not be reached, or the call timed out."""
    pass


STORAGE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    redis.RedisError,
    asyncio.TimeoutError,
    OSError,
)


def storage_guard(func):
    """Re-raises transport and backing store failures of a service method as StorageUnavailable."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except STORAGE_ERRORS as e:
            raise StorageUnavailable("The attendance store is currently unavailable.") from e
    return wrapper
