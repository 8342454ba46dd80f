import logging
from fastapi import APIRouter, Depends, Request, status
from typing import List

from ..services.onboarding_service import OnboardingService
from ..services.errors import ServiceError, StorageUnavailable
from ..services.projection import TotalProjection, project_total
from .schemas.onboarding import OnboardingBeginRequest, OnboardingCompleteRequest, OnboardingTokenResponse
from .schemas.user import StudentIdentity
from .auth import get_current_user
from .dependencies import get_onboarding_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])


@router.post(
    "/pending",
    response_model=OnboardingTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Park signup subjects until e-mail verification"
)
@limiter.limit("5/minute")
async def begin_onboarding(
    request: Request,
    begin_request: OnboardingBeginRequest,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Called right after signup, before the account is verified. The returned token is
    the only thing the client keeps; present it to `/onboarding/complete` once signed in.
    """
    try:
        token = await service.begin(
            begin_request.name,
            [(s.code, s.total) for s in begin_request.subjects]
        )
    except ServiceError as e:
        if isinstance(e, StorageUnavailable):
            logger.error("Storage failure while saving pending onboarding.", exc_info=True)
        raise to_http_exception(e)
    logger.info(f"Pending onboarding stored with {len(begin_request.subjects)} subject(s).")
    return OnboardingTokenResponse(token=token, expires_in=service.ttl_seconds)


@router.post("/complete", response_model=List[TotalProjection], summary="Finish onboarding after verification")
@limiter.limit("5/minute")
async def complete_onboarding(
    request: Request,
    complete_request: OnboardingCompleteRequest,
    user: StudentIdentity = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service)
):
    """Writes the profile and subject totals parked under the token for the signed-in student."""
    try:
        rows = await service.complete(user.student_id, complete_request.token)
    except ServiceError as e:
        if isinstance(e, StorageUnavailable):
            logger.error(f"Storage failure while completing onboarding for '{user.student_id}'.", exc_info=True)
        raise to_http_exception(e)
    logger.info(f"Onboarding completed for '{user.student_id}' with {len(rows)} subject(s).")
    return [project_total(row) for row in rows]
