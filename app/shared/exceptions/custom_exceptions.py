"""
Custom exception classes for standardized error handling.

Extends FastAPI's HTTPException with structured error responses.
The taxonomy is InvalidInput (400), NotFound (404), Conflict (409)
and Internal (500).
"""

from typing import Any, Dict, List, Optional, Union
from fastapi import HTTPException
from ..responses import ErrorDetail, HTTPStatusCodes


class BaseAPIException(HTTPException):
    """
    Base exception class for all API exceptions.

    Provides structured error information that integrates
    with the standard error response format.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        errors: Optional[List[ErrorDetail]] = None,
        headers: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """
        Initialize base API exception.

        Args:
            status_code: HTTP status code
            error_code: Machine-readable error code
            message: Human-readable error message
            errors: List of detailed errors
            headers: Optional HTTP headers
            **kwargs: Additional error context
        """
        self.error_code = error_code
        self.message = message
        self.errors = errors or []
        self.context = kwargs

        super().__init__(
            status_code=status_code,
            detail=message,
            headers=headers
        )

    def to_error_detail(self) -> ErrorDetail:
        """Convert exception to ErrorDetail object."""
        return ErrorDetail(
            code=self.error_code,
            message=self.detail,
            context=self.context or None
        )


class InvalidInputError(BaseAPIException):
    """Missing or malformed required fields (400)."""

    def __init__(
        self,
        message: str = "Invalid input",
        fields: Optional[List[str]] = None,
        **kwargs
    ):
        errors = [
            ErrorDetail(code="INVALID_INPUT", message=f"{field} is required", field=field)
            for field in (fields or [])
        ]
        super().__init__(
            status_code=HTTPStatusCodes.BAD_REQUEST,
            error_code="INVALID_INPUT",
            message=message,
            errors=errors,
            **kwargs
        )


class NotFoundError(BaseAPIException):
    """Exception for resource not found errors (404)."""

    def __init__(
        self,
        resource: str,
        resource_id: Union[str, int, None] = None,
        message: Optional[str] = None,
        **kwargs
    ):
        default_message = f"{resource} not found"
        if resource_id is not None:
            default_message = f"{resource} with id '{resource_id}' not found"

        super().__init__(
            status_code=HTTPStatusCodes.NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
            message=message or default_message,
            resource=resource,
            resource_id=None if resource_id is None else str(resource_id),
            **kwargs
        )


class ConflictError(BaseAPIException):
    """Exception for state conflicts (409)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        error_code: str = "RESOURCE_CONFLICT",
        **kwargs
    ):
        super().__init__(
            status_code=HTTPStatusCodes.CONFLICT,
            error_code=error_code,
            message=message,
            **kwargs
        )


class InvalidStatusTransition(ConflictError):
    """A status change the lifecycle does not allow, e.g. expired -> accepted."""

    def __init__(self, entity: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            message=f"{entity} cannot move from '{current}' to '{target}'",
            error_code="INVALID_STATUS_TRANSITION",
            entity=entity,
            current=current,
            target=target,
        )


class InternalServiceError(BaseAPIException):
    """Storage, broker or email failure surfaced to the caller (500)."""

    def __init__(
        self,
        message: str = "Internal server error",
        error_code: str = "INTERNAL_SERVER_ERROR",
        **kwargs
    ):
        super().__init__(
            status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
            error_code=error_code,
            message=message,
            **kwargs
        )


class DonorLookupError(InternalServiceError):
    """Donor matching could not read the user store."""

    def __init__(self, message: str = "Donor lookup failed", **kwargs):
        super().__init__(message=message, error_code="DONOR_LOOKUP_FAILED", **kwargs)
