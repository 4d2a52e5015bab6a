"""
Exception handlers for the FastAPI application.

Renders every failure in the standard error envelope and logs it with
the request id bound by the logging middleware.
"""

import logging
import traceback
from typing import Union, Dict, Any, List

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.config import settings
from ...core.request_context import current_request_id
from ..responses import error_response, ErrorDetail, HTTPStatusCodes
from .custom_exceptions import BaseAPIException

logger = logging.getLogger(__name__)


def _extract_validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into field-level error details."""
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"][1:])  # Skip 'body'

        input_value = error.get("input")
        if input_value is not None:
            input_str = str(input_value)
            if any(sensitive in field_path.lower() for sensitive in ['password', 'secret', 'token']):
                input_value = "[REDACTED]"
            elif len(input_str) > 100:
                input_value = input_str[:100] + "..."
            else:
                input_value = input_str

        errors.append({
            "code": "INVALID_INPUT",
            "message": error["msg"],
            "field": field_path or "unknown",
            "context": {"type": error["type"], "value": input_value}
        })
    return errors


async def base_api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Handle BaseAPIException and its subclasses."""
    request_id = current_request_id()

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"API Exception [{request_id}]: {exc.error_code} - {exc.detail}",
        extra={
            "request_id": request_id,
            "path": str(request.url.path),
            "method": request.method,
            "status_code": exc.status_code,
            "error_code": exc.error_code,
        }
    )

    errors = exc.errors if exc.errors else [exc.to_error_detail()]

    return error_response(
        errors=errors,
        message=exc.detail,
        status_code=exc.status_code,
        request_id=request_id,
        error_type=exc.error_code,
        path=str(request.url.path),
        method=request.method,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Convert plain HTTP exceptions (e.g. unknown route) to the standard format."""
    request_id = current_request_id()

    logger.warning(
        f"HTTP Exception [{request_id}]: {exc.status_code} - {exc.detail}",
        extra={"request_id": request_id, "path": str(request.url.path), "method": request.method}
    )

    error_code_map = {
        400: "INVALID_INPUT",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        500: "INTERNAL_SERVER_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    error_code = error_code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} Error"

    return error_response(
        errors=[ErrorDetail(code=error_code, message=message)],
        message=message,
        status_code=exc.status_code,
        request_id=request_id,
        error_type=error_code,
        path=str(request.url.path),
        method=request.method,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures map to InvalidInput (400)."""
    request_id = current_request_id()
    errors = _extract_validation_errors(exc)

    logger.warning(
        f"Validation Error [{request_id}]: {len(errors)} validation errors",
        extra={"request_id": request_id, "path": str(request.url.path), "method": request.method}
    )

    fields = ", ".join(e["field"] for e in errors)
    return error_response(
        errors=errors,
        message=f"Invalid or missing fields: {fields}",
        status_code=HTTPStatusCodes.BAD_REQUEST,
        request_id=request_id,
        error_type="INVALID_INPUT",
        path=str(request.url.path),
        method=request.method,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all unhandled exceptions.

    Storage and logic failures end here as Internal (500). Details are only
    exposed in debug mode.
    """
    request_id = current_request_id()

    logger.exception(
        f"Unhandled Exception [{request_id}]: {type(exc).__name__}: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        }
    )

    message = "Server error"
    if settings.debug:
        message = f"{type(exc).__name__}: {str(exc)}"

    return error_response(
        errors=[ErrorDetail(
            code="INTERNAL_SERVER_ERROR",
            message=message,
            context={"exception_type": type(exc).__name__}
        )],
        message=message,
        status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
        request_id=request_id,
        error_type="INTERNAL_SERVER_ERROR",
        path=str(request.url.path),
        method=request.method,
    )


__all__ = [
    "base_api_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "general_exception_handler",
]
