import logging
from fastapi import APIRouter, Depends, Request, status
from typing import List

from ..services.totals_service import TotalsService
from ..services.errors import ServiceError, StorageUnavailable
from ..services.projection import TotalProjection, project_total
from .schemas.totals import SubjectAddRequest, TotalUpdateRequest
from .schemas.user import StudentIdentity
from .auth import get_current_user
from .dependencies import get_totals_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/totals", tags=["Subject Totals"])


def _raise_for(e: ServiceError, action: str, student_id: str):
    if isinstance(e, StorageUnavailable):
        logger.error(f"Storage failure while trying to {action} for '{student_id}'.", exc_info=True)
    raise to_http_exception(e)


@router.get("", response_model=List[TotalProjection], summary="List my subject totals")
@limiter.limit("60/minute")
async def list_totals(
    request: Request,
    user: StudentIdentity = Depends(get_current_user),
    service: TotalsService = Depends(get_totals_service)
):
    """Returns the caller's counters ordered by subject code, with display values."""
    try:
        rows = await service.list_totals(user.student_id)
    except ServiceError as e:
        _raise_for(e, "list totals", user.student_id)
    return [project_total(row) for row in rows]


@router.post("", response_model=TotalProjection, status_code=status.HTTP_201_CREATED, summary="Add a subject")
@limiter.limit("20/minute")
async def add_subject(
    request: Request,
    add_request: SubjectAddRequest,
    user: StudentIdentity = Depends(get_current_user),
    service: TotalsService = Depends(get_totals_service)
):
    """Starts tracking a catalog subject with a zero count."""
    logger.info(f"Student '{user.student_id}' adding subject '{add_request.subject}'.")
    try:
        created = await service.add_subject(user.student_id, add_request.subject, add_request.total)
    except ServiceError as e:
        _raise_for(e, "add a subject", user.student_id)
    return project_total(created)


@router.patch("/{subject}", response_model=TotalProjection, summary="Edit the lecture total of a subject")
@limiter.limit("20/minute")
async def set_total(
    request: Request,
    subject: str,
    update_request: TotalUpdateRequest,
    user: StudentIdentity = Depends(get_current_user),
    service: TotalsService = Depends(get_totals_service)
):
    """Overwrites the total. A total below the current count is allowed, the display clamps."""
    try:
        updated = await service.set_total(user.student_id, subject, update_request.total)
    except ServiceError as e:
        _raise_for(e, "edit a total", user.student_id)
    return project_total(updated)


@router.post("/reconcile", response_model=List[TotalProjection], summary="Recount my totals from the ledger")
@limiter.limit("5/minute")
async def reconcile_totals(
    request: Request,
    user: StudentIdentity = Depends(get_current_user),
    service: TotalsService = Depends(get_totals_service)
):
    """Re-derives every count from the attendance ledger and returns the rows that were repaired."""
    try:
        repaired = await service.reconcile(user.student_id)
    except ServiceError as e:
        _raise_for(e, "reconcile totals", user.student_id)
    if repaired:
        logger.warning(f"Reconcile repaired {len(repaired)} counter(s) for '{user.student_id}'.")
    return [project_total(row) for row in repaired]
