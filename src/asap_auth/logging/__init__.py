"""Structured logging utilities with request id support."""

from .setup import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    get_logger,
    get_request_id,
    reset_request_id,
    set_request_id,
    setup_logging,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "setup_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "reset_request_id",
    "RequestContextMiddleware",
]
