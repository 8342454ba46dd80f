from datetime import datetime, timedelta, timezone
import jwt

from ..config.config import settings


def create_signed_token(data: dict, expires_delta: timedelta) -> str:
    """Signs the given claims as a JWT that expires after expires_delta."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_signed_token(token: str) -> dict:
    """Verifies signature and expiry. Raises jwt.PyJWTError on any problem."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
