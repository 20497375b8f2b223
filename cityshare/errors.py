"""Error taxonomy and the JSON error envelope.

Every error leaves the API as ``{"error": {"code": ..., "message": ...}}``
with an optional ``details`` entry and, when known, the ``requestId``.
"""
import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from .middleware_request_id import request_id_of


logger = logging.getLogger("cityshare.errors")


class AppError(Exception):
    status_code: int = 400
    code: str = "bad_request"
    message: str = "Bad request"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: Any = None):
        self.message = message or self.message
        self.code = code or self.code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Invalid input"


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"
    message = "returnDate must be after pickupDate"


class UsernameTaken(AppError):
    status_code = 400
    code = "username_taken"
    message = "Username already exists"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized"


class InvalidCredentials(Unauthorized):
    code = "invalid_credentials"
    message = "Invalid username or password"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    message = "Conflict"


class InvalidStatusTransition(Conflict):
    code = "invalid_status_transition"
    message = "Status transition not allowed"


def _envelope(request: Request, status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    req_id = request_id_of(request)
    if req_id:
        body["requestId"] = req_id
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"error": body}))


async def app_error_handler(request: Request, exc: AppError):
    return _envelope(request, exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException):
    try:
        code = HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_")
    except ValueError:
        code = "error"
    message = exc.detail if isinstance(exc.detail, str) else code
    details = None if isinstance(exc.detail, str) else exc.detail
    response = _envelope(request, exc.status_code, code, message, details)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg") or "Invalid input")
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]
    return _envelope(request, 400, ValidationError.code, message, details)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(
        "Integrity error on %s %s (request_id=%s): %s",
        request.method, request.url.path, request_id_of(request), exc.orig,
    )
    return _envelope(request, 409, Conflict.code, "Conflicting record")


async def unhandled_exception_handler(request: Request, exc: Exception):
    # Runs outside the request id middleware, so the id is echoed in the body instead of a header
    logger.exception("Unhandled error on %s %s (request_id=%s)", request.method, request.url.path, request_id_of(request))
    return _envelope(request, 500, "internal_error", "Internal server error")


def install_error_handlers(app) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
