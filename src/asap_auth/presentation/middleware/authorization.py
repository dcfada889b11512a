from collections.abc import Iterable

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ...auth.jwt_verify import ClaimProfile, TokenVerifier

logger = structlog.get_logger(__name__)

ALWAYS_EXEMPT_PATHS = frozenset({"/health"})


def bearer_token(request: Request) -> str | None:
    """Extract the bearer token from the Authorization header"""
    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class AsapAuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Verifies the ASAP token of every request against one claim profile

    Paths in the exempt allowlist (exact match) skip verification entirely.
    Verified claims are exposed as `request.state.asap_claims`.
    """

    def __init__(self, app, verifier: TokenVerifier, profile: ClaimProfile, exempt_paths: Iterable[str] = ()):
        super().__init__(app)
        self.verifier = verifier
        self.profile = profile
        self.exempt_paths = ALWAYS_EXEMPT_PATHS | frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        logger.debug("Trying authorization", profile=self.profile.name)
        request.state.asap_claims = await self.verifier.verify(bearer_token(request), self.profile)
        return await call_next(request)
