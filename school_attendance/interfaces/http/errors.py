import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...domain.errors import AppError, InternalError, ValidationError

logger = structlog.get_logger()

# error kinds for exceptions raised by the framework itself (unknown routes, wrong methods)
HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_401_UNAUTHORIZED: "auth_error",
    status.HTTP_403_FORBIDDEN: "authorization_error",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


def json_error(status_code: int, code: str, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "message": message}, headers=headers)


def error_response(exc: AppError) -> JSONResponse:
    return json_error(exc.status_code, exc.code, exc.message)


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.code, message=exc.message)
    return error_response(exc)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        code = InternalError.code
    else:
        code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    return json_error(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("rate_limited", path=request.url.path, limit=exc.detail)
    return json_error(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited", f"Rate limit exceeded: {exc.detail}")


async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else first.get("msg", "Invalid input")
    return error_response(ValidationError(message))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return error_response(InternalError())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
