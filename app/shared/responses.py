"""
Standard error response format and status code mapping.

Every error body carries a top-level `message` plus structured details.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from fastapi import status
from fastapi.responses import JSONResponse


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ResponseStatus(str, Enum):
    """Standard response status values."""
    SUCCESS = "success"
    ERROR = "error"


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(None, description="Field name for validation errors")
    context: Optional[Dict[str, Any]] = Field(None, description="Additional error context")


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Used for all error responses including validation errors,
    business logic errors, and system errors.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "errors": [
                    {
                        "code": "RESOURCE_NOT_FOUND",
                        "message": "BloodRequest with id '65f1c0ffee0000000000abcd' not found",
                        "context": {"resource": "BloodRequest"}
                    }
                ],
                "message": "BloodRequest with id '65f1c0ffee0000000000abcd' not found",
                "timestamp": "2024-01-25T12:00:00Z",
                "request_id": "req_123456"
            }
        }
    )

    success: bool = Field(default=False, description="Always false for errors")
    errors: List[ErrorDetail] = Field(..., description="List of error details")
    message: str = Field(..., description="Summary error message")
    timestamp: str = Field(default_factory=_timestamp, description="Error timestamp")
    status: ResponseStatus = Field(default=ResponseStatus.ERROR)
    request_id: Optional[str] = Field(None, description="Request tracking ID")
    error_type: Optional[str] = Field(None, description="Error classification")
    path: Optional[str] = None
    method: Optional[str] = None


class HTTPStatusCodes:
    """Status codes used by the error taxonomy."""

    OK = status.HTTP_200_OK
    CREATED = status.HTTP_201_CREATED

    BAD_REQUEST = status.HTTP_400_BAD_REQUEST  # InvalidInput
    NOT_FOUND = status.HTTP_404_NOT_FOUND  # NotFound
    CONFLICT = status.HTTP_409_CONFLICT  # illegal state transition

    INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR  # Internal
    SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE


def error_response(
    errors: List[Union[ErrorDetail, Dict[str, Any]]],
    message: str = "Request failed",
    status_code: int = HTTPStatusCodes.BAD_REQUEST,
    **kwargs
) -> JSONResponse:
    """
    Create a standard error response.

    Args:
        errors: List of error details
        message: Error summary message
        status_code: HTTP status code (default 400)
        **kwargs: Additional response fields

    Returns:
        JSONResponse with error format
    """
    error_details = [ErrorDetail(**e) if isinstance(e, dict) else e for e in errors]

    response = ErrorResponse(
        errors=error_details,
        message=message,
        **kwargs
    )
    return JSONResponse(
        content=response.model_dump(mode="json", exclude_none=True),
        status_code=status_code
    )
