"""
Exception taxonomy for marketplace search.
"""

from typing import Optional


class SearchError(Exception):
    """Base class for errors raised by the search core."""


class InvalidSearchRequest(SearchError):
    """A structurally invalid request (bad number, bad range, bad page).

    Attributes:
        field: Name of the offending request field, when known
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class SearchTimeout(SearchError):
    """The per-request deadline expired before the search completed."""


class UpstreamServiceError(SearchError):
    """An external dependency (the geocoding source) failed.

    Attributes:
        status: HTTP status returned by the upstream, if any
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UpstreamRateLimited(UpstreamServiceError):
    """The upstream (or our own outbound budget) refused the call."""
