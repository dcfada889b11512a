import hashlib
import time
from collections.abc import Callable

import httpx
import structlog

from ..http.client import HttpClient
from .errors import KeyFetchFailureError, MissingKeyIdError
from .key_resolution import KeyResolutionPolicy
from .ttl_cache import TTLCache

logger = structlog.get_logger(__name__)


def hash_kid(kid: str) -> str:
    """One-way hash used in place of the key id on the key server"""
    return hashlib.sha256(kid.encode()).hexdigest()


def public_key_url(base_url: str, kid: str) -> str:
    return f"{base_url}/{hash_kid(kid)}.pem"


class PublicKeyCache:
    """
    Public key lookup by key id, backed by the key servers of each issuer

    Keys are cached per kid for `ttl` seconds from insertion. Concurrent misses
    for the same kid each fetch the key; the last response written wins.
    """

    def __init__(
        self,
        policy: KeyResolutionPolicy,
        http_client: HttpClient,
        ttl: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy
        self.http_client = http_client
        self.ttl = ttl
        self._cache = TTLCache(default_ttl=ttl, clock=clock)

    async def get_key(self, issuer: str | None, kid: str | None) -> bytes:
        """
        Get the PEM public key for a key id

        Raises:
            MissingKeyIdError: kid is empty
            UnresolvableIssuerOrKeyIdError: no mapping for issuer/kid
            KeyFetchFailureError: key server unreachable or non-2xx
        """
        if not kid:
            raise MissingKeyIdError(details={"issuer": issuer})

        pub_key = self._cache.get(kid)
        if pub_key is not None:
            return pub_key

        base_url = self.policy.resolve(issuer, kid)
        url = public_key_url(base_url, kid)

        logger.debug("Fetching pub key from key server", issuer=issuer, kid=kid, url=url)
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as e:
            logger.error("Obtaining asap pub key failed", issuer=issuer, kid=kid, url=url, exc_info=True)
            raise KeyFetchFailureError(details={"issuer": issuer, "kid": kid, "url": url}) from e

        pub_key = response.content
        self._cache.set(kid, pub_key, self.ttl)
        return pub_key

