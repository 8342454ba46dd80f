import logging
from fastapi import APIRouter, Depends, Request, Response, status
from typing import List
from uuid import UUID

from ..services.ledger_service import LedgerService
from ..services.errors import ServiceError, StorageUnavailable
from .schemas.attendance import AttendanceMarkRequest, AttendanceLogResponse
from .schemas.user import StudentIdentity
from .auth import get_current_user
from .dependencies import get_ledger_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance Ledger"])


@router.get("", response_model=List[AttendanceLogResponse], summary="List my attendance history")
@limiter.limit("60/minute")
async def list_attendance(
    request: Request,
    user: StudentIdentity = Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service)
):
    """Returns every attendance event of the caller, newest first."""
    try:
        return await service.list_attendance(user.student_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "",
    response_model=AttendanceLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Mark attendance for one lecture"
)
@limiter.limit("30/minute")
async def record_attendance(
    request: Request,
    mark_request: AttendanceMarkRequest,
    user: StudentIdentity = Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service)
):
    """
    Appends an attendance event and increments the subject's count in one step.
    - 409 `NotConfigured` if the subject was never added.
    - 409 `CapacityReached` if the subject already reached its total.
    """
    logger.info(f"Student '{user.student_id}' marking attendance for '{mark_request.subject}'.")
    try:
        return await service.record_attendance(user.student_id, mark_request.subject, mark_request.note)
    except StorageUnavailable as e:
        logger.error(f"Storage failure while marking attendance for '{user.student_id}'.", exc_info=True)
        raise to_http_exception(e)
    except ServiceError as e:
        logger.info(f"Marking rejected for '{user.student_id}': {type(e).__name__}: {e}")
        raise to_http_exception(e)


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an attendance record")
@limiter.limit("30/minute")
async def delete_attendance(
    request: Request,
    log_id: UUID,
    user: StudentIdentity = Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service)
):
    """Removes one of the caller's attendance events and decrements the subject's count."""
    logger.info(f"Student '{user.student_id}' deleting attendance record {log_id}.")
    try:
        await service.delete_attendance(user.student_id, log_id)
    except StorageUnavailable as e:
        logger.error(f"Storage failure while deleting attendance {log_id}.", exc_info=True)
        raise to_http_exception(e)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
