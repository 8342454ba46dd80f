import logging
from typing import Optional
from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from pydantic import ValidationError

from .schemas.user import StudentIdentity, TokenData
from ..services.onboarding_service import ONBOARDING_TOKEN_TYPE
from ..tools.tokens import decode_signed_token

logger = logging.getLogger(__name__)

# Tokens are issued by the external identity provider; this service only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Query(None, description="Fallback for EventSource clients that cannot set headers."),
) -> StudentIdentity:
    """
    Decodes the bearer token, validates its claims with Pydantic and returns the
    student every following operation is scoped to.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = credentials.credentials if credentials else access_token
    if not token:
        raise credentials_exception

    try:
        payload = decode_signed_token(token)
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.typ == ONBOARDING_TOKEN_TYPE or not token_data.sub:
        logger.warning("Token is valid but carries no subject, denying access.")
        raise credentials_exception

    return StudentIdentity(student_id=token_data.sub, email=token_data.email)
