# tally/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings

def get_limiter_key(request: Request) -> str:
    """
    Rate limit key: the student id from a decodable bearer token, otherwise the
    client address. Expiry is not checked, only the identity is needed.
    """
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1]
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            student_id = payload.get("sub")
            if student_id:
                return student_id
        except jwt.PyJWTError:
            # Undecodable token, fall back to the address based limit.
            pass

    return get_remote_address(request)

# RATE_LIMITER_REDIS_URL defaults to "memory://" for single-process runs.
limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_REDIS_URL)
