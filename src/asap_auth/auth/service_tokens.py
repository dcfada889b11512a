import time
from collections.abc import Callable

import structlog

from ..http.client import AuthenticatedHttpClient
from .errors import ConfigurationError
from .signing import SignOptions, TokenSigner
from .ttl_cache import TTLCache

logger = structlog.get_logger(__name__)

OUTBOUND_TOKEN_EXPIRY = 60 * 60
DEFAULT_OUTBOUND_CACHE_TTL = 60 * 45


class OutboundTokenCache:
    """Caches the self-signed token this process presents to other services"""

    CACHE_KEY = "asap"

    def __init__(
        self,
        signer: TokenSigner,
        cache_ttl: float = DEFAULT_OUTBOUND_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if cache_ttl >= OUTBOUND_TOKEN_EXPIRY:
            raise ConfigurationError(
                "Outbound token cache TTL must be shorter than the token expiry",
                details={"cache_ttl": cache_ttl, "token_expiry": OUTBOUND_TOKEN_EXPIRY},
            )

        self.signer = signer
        self.cache_ttl = cache_ttl
        self._cache = TTLCache(default_ttl=cache_ttl, clock=clock)

    def get_token(self) -> str:
        """Get the cached token, signing a fresh one when it is missing or stale"""
        token = self._cache.get(self.CACHE_KEY)
        if token is not None:
            return token

        logger.debug("Signing outbound asap token")
        token = self.signer.server_token({}, SignOptions(expires_in=OUTBOUND_TOKEN_EXPIRY))
        self._cache.set(self.CACHE_KEY, token)
        return token

    def clear(self) -> None:
        """Clear the token cache"""
        self._cache.clear()


def create_asap_http_client(
    token_cache: OutboundTokenCache,
    base_url: str | None = None,
    timeout: float = 3.0,
    max_retries: int = 2,
    **kwargs,
) -> AuthenticatedHttpClient:
    """HTTP client presenting the cached ASAP token as bearer credentials"""
    return AuthenticatedHttpClient(
        auth_provider=token_cache.get_token,
        base_url=base_url,
        timeout=timeout,
        max_retries=max_retries,
        **kwargs,
    )
