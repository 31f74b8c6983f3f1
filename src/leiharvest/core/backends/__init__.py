"""Backend implementations for calling the registry API."""

from .base import (
    Backend,
    BackendError,
    DecodeError,
    FetchError,
    FetchResult,
    PermanentClientError,
    RateLimitError,
    RequestSpec,
    SubjectKind,
    TransientNetworkError,
)
from .http_backend import HttpBackend

__all__ = [
    # Base classes
    "Backend",
    "RequestSpec",
    "FetchResult",
    "SubjectKind",
    # Errors
    "BackendError",
    "FetchError",
    "TransientNetworkError",
    "RateLimitError",
    "PermanentClientError",
    "DecodeError",
    # HTTP backend
    "HttpBackend",
]
