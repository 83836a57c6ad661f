"""Global error handling: every failure becomes {success: false, message}"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from salesforms.config import get_settings
from salesforms.exceptions import FormError
import traceback
import logging

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
        headers=headers
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Global error handler middleware"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
            stack = traceback.format_exc()
            logger.error(stack)

            extra = {}
            if get_settings().environment != "production":
                extra["stack"] = stack
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Server Error",
                **extra
            )


async def form_error_handler(request: Request, exc: FormError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"Route not found: {request.method} {request.url.path}"
    return error_response(exc.status_code, str(message), headers=getattr(exc, "headers", None))


def setup_error_handlers(app: FastAPI):
    """
    Register the JSON error responders on the application

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(FormError, form_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_middleware(ErrorHandlerMiddleware)
