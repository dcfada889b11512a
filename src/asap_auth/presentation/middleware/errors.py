import time

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...auth.errors import AsapError, ErrorKind

logger = structlog.get_logger(__name__)


def error_body(request: Request, status: int, message: str, message_key: str) -> dict:
    return {
        "timestamp": int(time.time() * 1000),
        "status": status,
        "message": message,
        "messageKey": message_key,
        "path": request.url.path,
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Maps errors to HTTP responses

    Authorization failures become a bare 401 so callers cannot tell which
    check failed. Malformed requests are 400, everything else 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)

        except AsapError as e:
            if e.kind == ErrorKind.FORBIDDEN:
                logger.info("Forbidden request", error=str(e), path=request.url.path)
                return JSONResponse(status_code=403, content=error_body(request, 403, "Forbidden", "forbidden"))

            if e.is_authorization_failure:
                logger.info("Unauthorized token", error=str(e), path=request.url.path, **e.details)
                return Response(status_code=401)

            logger.error("Internal error", error=str(e), path=request.url.path, exc_info=True)
            return JSONResponse(
                status_code=500,
                content=error_body(request, 500, "Internal Server Error", "internal.server.errors"),
            )

        except ValueError as e:
            logger.error("Invalid request", error=str(e), path=request.url.path)
            return JSONResponse(status_code=400, content=error_body(request, 400, "Invalid request", "invalid_request"))

        except Exception as e:
            logger.error("Internal error", error=str(e), path=request.url.path, exc_info=True)
            return JSONResponse(
                status_code=500,
                content=error_body(request, 500, "Internal Server Error", "internal.server.errors"),
            )
