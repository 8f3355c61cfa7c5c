"""
Error handling module for marketplace search.

Provides the exception taxonomy and retry logic for outbound calls.
"""

from .errors import (
    SearchError,
    InvalidSearchRequest,
    SearchTimeout,
    UpstreamServiceError,
    UpstreamRateLimited,
)
from .error_handler import ErrorHandler, RetryConfig

__all__ = [
    'SearchError',
    'InvalidSearchRequest',
    'SearchTimeout',
    'UpstreamServiceError',
    'UpstreamRateLimited',
    'ErrorHandler',
    'RetryConfig',
]
