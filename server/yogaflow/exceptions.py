# ─────────────────────────────────────────────────────────────────────────────
# Error taxonomy, result values, and FastAPI exception handlers
# ─────────────────────────────────────────────────────────────────────────────
# Components hand failures back as Err(AppError) values; route handlers turn
# them into responses with error_response(). Exceptions are reserved for the
# process boundary: backends and the identity provider raise YogaFlowError
# subclasses, which the orchestrator/gate convert into AppError values.
# Anything that still escapes is answered by the handlers registered below.
# ─────────────────────────────────────────────────────────────────────────────


from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION = "VALIDATION"
    AUTHORIZATION = "AUTHORIZATION"
    GENERATION_FAILURE = "GENERATION_FAILURE"
    UNKNOWN = "UNKNOWN"


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 401,
    ErrorKind.GENERATION_FAILURE: 500,
    ErrorKind.UNKNOWN: 500,
}


@dataclass(frozen=True)
class AppError:
    """A classified failure.

    ``error`` is the short client-facing summary, ``message`` the optional
    longer explanation, ``details`` the field-path keyed validation map.
    ``status_code`` overrides the kind's default HTTP status.
    """

    kind: ErrorKind
    error: str
    message: str | None = None
    details: dict[str, list[str]] | None = None
    status_code: int | None = None

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        if self.details is not None:
            body["details"] = self.details
        return body


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: AppError


Result = Union[Ok[T], Err]


def status_for(error: AppError) -> int:
    """HTTP status for an error: explicit override first, then the kind table."""
    if error.status_code is not None:
        return error.status_code
    return _STATUS_BY_KIND[error.kind]


def error_response(error: AppError) -> JSONResponse:
    """Serialize an AppError into the JSON error body."""
    return JSONResponse(status_code=status_for(error), content=error.to_body())


# ── Exception hierarchy (process-boundary failures) ──────────────────────────


class YogaFlowError(Exception):
    """Base exception for failures raised by external collaborators."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    status_code: int | None = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BackendError(YogaFlowError):
    """The generation backend failed or produced something unusable."""

    kind = ErrorKind.GENERATION_FAILURE


class BackendUnauthorizedError(YogaFlowError):
    """The generation backend refused the call for lack of a user."""

    kind = ErrorKind.AUTHORIZATION

    def __init__(self, message: str = "UNAUTHENTICATED_USER"):
        super().__init__(message)


class BackendUserNotFoundError(YogaFlowError):
    """The caller has a session but no usable account behind it."""

    kind = ErrorKind.AUTHORIZATION
    status_code = 403

    def __init__(self, message: str = "USER_NOT_FOUND"):
        super().__init__(message)


class IdentityProviderError(YogaFlowError):
    """The session/identity provider could not be reached or answered oddly."""

    status_code = 503


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register the last-resort exception handlers on the FastAPI app.

    Route handlers answer expected failures themselves; these guarantee an
    explicit JSON response for everything else.
    """

    @app.exception_handler(YogaFlowError)
    async def yogaflow_error_handler(request: Request, exc: YogaFlowError) -> JSONResponse:
        logger.error(
            "yogaflow_error",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        error = AppError(
            kind=exc.kind,
            error="Request failed",
            message=exc.message,
            status_code=exc.status_code,
        )
        return error_response(error)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=True)
        error = AppError(
            kind=ErrorKind.UNKNOWN,
            error="Internal server error",
            message=str(exc) or "Unknown error",
        )
        return error_response(error)
