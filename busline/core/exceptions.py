"""
Error taxonomy for the Busline API.

Services and route handlers raise these; the handlers registered in
`busline.main` render every one of them as ``{"error": "<message>"}`` with
the status code of the class.
"""

from logging import getLogger
from traceback import format_exception

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

logger = getLogger(__name__)


class APIException(HTTPException):
    """Base class for all application-specific exceptions."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Bad request"

    def __init__(self, detail: str | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.detail,
            headers={"X-Error": type(self).__name__},
        )


class ValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid input"


class InvalidStateError(APIException):
    """A cross-entity invariant does not hold (e.g. seat from another bus)."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid state"


class Unauthorized(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Authentication required"


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "You don't have permission to access this resource"


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


def from_integrity_error(e: IntegrityError, detail: str | None = None) -> ConflictError:
    """Turn a constraint violation raised by the database into a 409."""
    logger.info("Integrity violation: %s", e.orig)
    return ConflictError(detail or "The request conflicts with existing data")


def log_exception(e: Exception) -> None:
    logger.error("".join(format_exception(type(e), e, e.__traceback__)))
