"""
Errors raised by the GO BUS API and the mapping of library errors onto them.

Every API error is an `HTTPException` carrying its status code, a detail
message and an `X-Error` header naming the error class, so that clients can
branch on the header instead of parsing the message.

Usage:
    - Raise the specific error from a handler, e.g. `InvalidIdentifier()` or
      `MissingParameter(Trip.days_of_week)`.
    - Route every exception of a handler through `handle()`, which converts
      store, lock service and Pydantic failures and re-raises.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import Column


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class of the API errors.

    Subclasses set `status_code` and either a fixed `detail` or a `template`
    that is filled with the names of the columns passed on construction.
    The `X-Error` header defaults to the class name.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    template = None
    headers = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "headers" not in cls.__dict__:
            cls.headers = {"X-Error": cls.__name__}

    def __init__(self, *columns: Column, detail=None):
        if detail is None and self.template is not None:
            detail = self.template.format(*(column.name for column in columns))
        super().__init__(
            status_code=self.status_code,
            detail=self.detail if detail is None else detail,
            headers=self.headers,
        )


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    detail = "Invalid request data"


class InvalidValue(APIException):
    template = "Invalid {} is provided"


class MissingParameter(APIException):
    template = "The {} is missing"


# ---------------------------------------------------------------------------
# Authentication and permission errors
# ---------------------------------------------------------------------------
class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid username or password"


class PasswordNotSet(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Account has no password set"


class InvalidToken(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid or expired token"


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------
class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"


class InvalidAssociation(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    template = "The {} is not associated with {}"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------
class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "A record with the same values already exists"


class DuplicateRegistration(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Bus with this registration number already exists"


class InvalidStateTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    template = "The {} cannot be set to the provided value"


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Lock acquisition timed out"


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "A referenced record does not exist"


# ---------------------------------------------------------------------------
# Backend failures
# ---------------------------------------------------------------------------
class StoreError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "The data store failed"


class LockServiceError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "The lock service is unavailable"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def integrityErrorCode(e: IntegrityError) -> str | None:
    """
    Return the SQLSTATE of an integrity error.

    PostgreSQL reports it through the psycopg2 diagnostics, SQLite only
    through the message text.
    """
    diag = getattr(e.orig, "diag", None)
    if diag is not None:
        return diag.sqlstate
    message = str(e.orig)
    if message.startswith("UNIQUE constraint failed"):
        return UNIQUE_VIOLATION
    if message.startswith("FOREIGN KEY constraint failed"):
        return FOREIGN_KEY_VIOLATION
    return None


def integrityErrorDetail(e: IntegrityError) -> str:
    """
    Readable detail of an integrity error.

    PostgreSQL's `Key (col)=(value) already exists.` becomes
    `For col value value already exists`.
    """
    diag = getattr(e.orig, "diag", None)
    message = getattr(diag, "message_detail", None)
    if message is None:
        return str(e.orig)
    for char in '"().':
        message = message.replace(char, "")
    return message.replace("Key ", "For ").replace("=", " value ")


def logException(e: Exception) -> None:
    """Write the traceback of `e` to Uvicorn's error logger."""
    getLogger("uvicorn.error").error("".join(format_exception(e)))


async def validationErrorHandler(request: Request, e: RequestValidationError):
    """Answer malformed request input with 400 instead of FastAPI's 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(e.errors())},
        headers=PydanticError.headers,
    )


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Re-raise `e` as an API error.

    API errors pass through unchanged. Integrity errors become conflicts,
    other store failures keep the message of the store, and anything
    unexpected is logged with its traceback before it propagates.
    """
    if isinstance(e, APIException):
        raise e
    if isinstance(e, IntegrityError):
        code = integrityErrorCode(e)
        if code == UNIQUE_VIOLATION:
            raise UniqueViolation(detail=integrityErrorDetail(e))
        if code == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(detail=integrityErrorDetail(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=jsonable_encoder(e.errors()))
    if isinstance(e, RedisError):
        logException(e)
        raise LockServiceError(detail=str(e))
    if isinstance(e, SQLAlchemyError):
        logException(e)
        orig = getattr(e, "orig", None)
        raise StoreError(detail=str(orig if orig is not None else e))

    logException(e)
    raise e
