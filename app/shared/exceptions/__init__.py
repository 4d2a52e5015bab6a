"""
Shared exceptions for the blood donation service.

Defines custom exception classes for different error scenarios.
"""

from .custom_exceptions import (
    BaseAPIException,
    InvalidInputError,
    NotFoundError,
    ConflictError,
    InvalidStatusTransition,
    InternalServiceError,
    DonorLookupError,
)
from .handlers import (
    base_api_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)

__all__ = [
    'BaseAPIException',
    'InvalidInputError',
    'NotFoundError',
    'ConflictError',
    'InvalidStatusTransition',
    'InternalServiceError',
    'DonorLookupError',

    # Exception Handlers
    'base_api_exception_handler',
    'http_exception_handler',
    'validation_exception_handler',
    'general_exception_handler'
]
