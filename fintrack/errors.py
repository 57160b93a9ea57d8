# fintrack/errors.py

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None, errors=None, headers=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.errors = errors
        self.headers = headers


class ValidationError(AppError):
    status_code = 400
    message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str):
        return cls(message, errors=[{"field": field, "message": message}])


class AuthenticationError(AppError):
    status_code = 401
    message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    message = "Insufficient permissions. Access denied."


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class ConflictError(AppError):
    status_code = 400
    message = "Resource already exists"


class RateLimitError(AppError):
    status_code = 429
    message = "Too many requests. Please try again later."


class ServerError(AppError):
    status_code = 500


def error_body(message: str, errors=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _field_name(loc) -> str:
    # drop the "body"/"query"/"path" marker pydantic puts first
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def register_exception_handlers(app: FastAPI, headers=None):
    """Install JSON error handlers.

    ``headers`` are added to catch-all 500 responses, which are rendered
    outside the app's own middleware.
    """
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.errors),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            msg = err.get("msg", "Invalid value")
            # pydantic prefixes messages raised from validators
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            errors.append({"field": _field_name(err.get("loc", ())), "message": msg})
        return JSONResponse(status_code=400, content=error_body("Validation failed", errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body = error_body("Internal server error")
        if request.app.state.settings.is_development:
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=body, headers=headers)
