import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from imagebot.config.logging import add_request_context, get_logger

logger = get_logger(__name__)


class ImageBotException(Exception):
    """Base exception for the image bot backend."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ImageBotException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class NotFoundError(ImageBotException):
    """Raised when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


# Job system errors


class JobError(ImageBotException):
    """Base class for errors raised while running background jobs."""


class ConfigurationError(JobError):
    """No handler is registered for a job's type. Never retried."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(
            f"No handler found for job type: {job_type}",
            details={"job_type": job_type},
        )


class ExternalServiceError(JobError):
    """The polled external system failed, or querying it raised."""

    def __init__(self, message: str, task_id: str | None = None):
        self.task_id = task_id
        super().__init__(
            message,
            status.HTTP_502_BAD_GATEWAY,
            {"task_id": task_id} if task_id else None,
        )


class JobTimeoutError(ExternalServiceError):
    """Polling attempt budget exhausted without a terminal outcome."""

    def __init__(self, task_id: str, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Max polling attempts ({attempts}) reached for job {task_id}",
            task_id=task_id,
        )


class PersistenceError(JobError):
    """The job store could not be read or written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


class InvalidTransitionError(JobError):
    """A status write would leave a terminal state or skip a step."""

    def __init__(self, job_id: int, status_to: str):
        self.job_id = job_id
        super().__init__(
            f"Job {job_id} cannot transition to {status_to}",
            status.HTTP_409_CONFLICT,
            {"job_id": job_id, "status": status_to},
        )


class NotificationError(JobError):
    """The notification sink failed to deliver a message or artifact."""


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response envelope."""
    return {
        "ok": False,
        "error": {
            "message": message,
            "code": status_code,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Create standardized success response envelope."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_json(
    request: Request,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code=status_code,
            message=message,
            details=details,
            request_id=_request_id(request),
        ),
    )


async def image_bot_exception_handler(
    request: Request, exc: ImageBotException
) -> JSONResponse:
    """Render application exceptions (including job errors) as error envelopes."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application exception",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )
    return _error_json(request, exc.status_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    return _error_json(request, exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler; never leaks the exception text to the client."""
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        exc_info=True,
    )
    return _error_json(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request (and its log lines) with a correlation id."""

    async def dispatch(self, request: Request, call_next):
        # Inbound X-Request-ID wins
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        add_request_context(request_id, method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
