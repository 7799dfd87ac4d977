import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CustodyError(Exception):
    """Base class for typed errors raised by the custody services."""

    code = "custody_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(CustodyError):
    code = "not_found"
    status_code = 404


class PermissionDenied(CustodyError):
    code = "permission_denied"
    status_code = 403


class ConflictAlreadyRequested(CustodyError):
    code = "conflict_already_requested"
    status_code = 409


class InvalidTransition(CustodyError):
    code = "invalid_transition"
    status_code = 409


class AlreadyTerminal(CustodyError):
    code = "already_terminal"
    status_code = 409


class ValidationError(CustodyError):
    code = "validation_error"
    status_code = 422


class StorageFailure(CustodyError):
    code = "storage_failure"
    status_code = 500


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(CustodyError)
    async def custody_error_handler(request: Request, exc: CustodyError):
        message = exc.message
        details = exc.details
        if isinstance(exc, StorageFailure):
            # Full context was logged where the failure happened
            message = "Internal server error"
            details = None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, message, details),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
