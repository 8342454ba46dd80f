# tally/backend/api/utilities/errors.py

from fastapi import HTTPException, status

from ...services.errors import (
    AlreadyExists,
    CapacityReached,
    InvalidValue,
    NotConfigured,
    NotFound,
    ServiceError,
    StorageUnavailable,
    UnknownSubject,
)

_STATUS_BY_ERROR = {
    NotConfigured: status.HTTP_409_CONFLICT,
    CapacityReached: status.HTTP_409_CONFLICT,
    AlreadyExists: status.HTTP_409_CONFLICT,
    InvalidValue: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnknownSubject: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFound: status.HTTP_404_NOT_FOUND,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: ServiceError) -> HTTPException:
    """
    Translates a typed service failure into an HTTP error. The error kind travels
    in the body so the client can pick its own user-facing message.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped_status in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            status_code = mapped_status
            break
    return HTTPException(
        status_code=status_code,
        detail={"error": type(error).__name__, "message": str(error)},
    )
