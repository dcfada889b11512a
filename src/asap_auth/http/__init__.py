"""HTTP client utilities with request id propagation and retry support."""

from .client import AuthenticatedHttpClient, HttpClient

__all__ = [
    "HttpClient",
    "AuthenticatedHttpClient",
]
