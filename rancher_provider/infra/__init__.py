"""Internal machinery: HTTP and retry."""

from .http import HttpClient, HttpError
from .retry import on_status_code, retry

__all__ = [
    "HttpClient",
    "HttpError",
    "on_status_code",
    "retry",
]
