# Context variable carrying the request id of the current request
import contextvars
import logging
import sys
import time
import uuid
from typing import TextIO

import structlog
from pythonjsonlogger import jsonlogger
from structlog.stdlib import LoggerFactory

REQUEST_ID_HEADER = "X-Request-Id"


def setup_logging(
    service_name: str,
    level: str = "INFO",
    format_type: str = "json",  # "json" or "console"
    stream: TextIO | None = None,
) -> None:
    """
    Set up structured logging for the service

    Args:
        service_name: Name of the service for log context
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_type: "json" for production, "console" for development
        stream: Output stream, stdout by default
    """

    stream = stream or sys.stdout

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    # Configure processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context(service_name),
        add_request_context(),
    ]

    if format_type == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if format_type == "json":
        # JSON output for loggers that bypass structlog (uvicorn, httpx)
        root_logger = logging.getLogger()
        handler = logging.StreamHandler(stream)
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        root_logger.handlers = [handler]


def add_service_context(service_name: str):
    """Add service context to all log entries"""

    def processor(logger, method_name, event_dict):
        event_dict["service"] = service_name
        return event_dict

    return processor


def add_request_context():
    """Add the request id from context"""

    def processor(logger, method_name, event_dict):
        request_id = _request_id_var.get()
        if request_id:
            event_dict.setdefault("request_id", request_id)
        return event_dict

    return processor


_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> contextvars.Token:
    """Set request ID in context"""
    return _request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id_var.reset(token)


def get_request_id() -> str | None:
    """Get request ID from context"""
    return _request_id_var.get()


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


class RequestContextMiddleware:
    """
    ASGI middleware that assigns a request id and writes the access log

    The id is taken from the X-Request-Id header when present, otherwise a new
    one is generated. It is echoed back on the response.
    """

    def __init__(self, app, header: str = REQUEST_ID_HEADER):
        self.app = app
        self.header = header.lower()
        self.logger = get_logger(__name__)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {name.decode().lower(): value.decode() for name, value in scope.get("headers", [])}
        request_id = headers.get(self.header) or uuid.uuid4().hex
        start = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = list(message.get("headers", []))
                response_headers.append((self.header.encode(), request_id.encode()))
                message["headers"] = response_headers
            await send(message)

        token = set_request_id(request_id)
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            url = scope.get("path", "")
            if scope.get("query_string"):
                url = f"{url}?{scope['query_string'].decode()}"
            self.logger.info(
                "access",
                m=scope.get("method"),
                u=url,
                s=status_code,
                d=round((time.perf_counter() - start) * 1000),
            )
            reset_request_id(token)
