from __future__ import annotations

from fastapi import HTTPException, status

from addressdesk.tickets.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
    WorkflowError,
)

_STATUS_BY_ERROR: tuple[tuple[type[WorkflowError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: WorkflowError) -> HTTPException:
    """Translate a workflow error into the HTTP error returned to the caller."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if isinstance(exc, ValidationError):
                return HTTPException(status_code=status_code, detail={"message": str(exc), "problems": exc.problems})
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
