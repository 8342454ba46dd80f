import logging
from fastapi import APIRouter, Depends, Request

from ..services.profile_service import ProfileService
from ..services.errors import ServiceError, StorageUnavailable
from .schemas.profile import ProfileResponse
from .schemas.user import StudentIdentity
from .auth import get_current_user
from .dependencies import get_profile_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse, summary="Get my profile")
@limiter.limit("60/minute")
async def get_profile(
    request: Request,
    user: StudentIdentity = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service)
):
    """404 `NotFound` until onboarding has been completed."""
    try:
        return await service.get_profile(user.student_id)
    except ServiceError as e:
        if isinstance(e, StorageUnavailable):
            logger.error(f"Storage failure while reading the profile of '{user.student_id}'.", exc_info=True)
        raise to_http_exception(e)
