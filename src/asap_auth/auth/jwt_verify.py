# Assumptions:
# - ASAP tokens are always signed with RS256
# - The unverified iss claim and kid header select the public key
# - Public keys are cached by PublicKeyCache

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import jwt
import structlog

from .errors import InvalidSignatureOrClaimsError, MissingKeyIdError
from .public_keys import PublicKeyCache
from .signing import ASAP_ALGORITHM

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ClaimProfile:
    """Accepted audience and issuers for one class of callers"""

    name: str
    accepted_audience: str
    accepted_issuers: frozenset[str]

    @classmethod
    def create(cls, name: str, accepted_audience: str, accepted_issuers: Iterable[str]) -> "ClaimProfile":
        return cls(name=name, accepted_audience=accepted_audience, accepted_issuers=frozenset(accepted_issuers))


class TokenVerifier:
    """Verifies inbound ASAP tokens against a claim profile"""

    def __init__(
        self,
        key_cache: PublicKeyCache,
        system_profile: ClaimProfile,
        jitsi_profile: ClaimProfile,
        protected_api: bool = True,
    ):
        self.key_cache = key_cache
        self.system_profile = system_profile
        self.jitsi_profile = jitsi_profile
        self.protected_api = protected_api

    async def verify(self, token: str | None, profile: ClaimProfile) -> dict[str, Any]:
        """
        Verify a raw token and return its claims

        With protected mode off every token is accepted and no claims are returned.

        Raises:
            MissingKeyIdError: token header has no kid
            UnresolvableIssuerOrKeyIdError: no key server for iss/kid
            KeyFetchFailureError: public key could not be fetched
            InvalidSignatureOrClaimsError: malformed token, bad signature, alg, aud or iss
        """
        if not self.protected_api:
            return {}

        try:
            header = jwt.get_unverified_header(token or "")
            unverified_claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            logger.info("Malformed token", profile=profile.name, error=str(e))
            raise InvalidSignatureOrClaimsError("malformed token") from e

        kid = header.get("kid")
        issuer = unverified_claims.get("iss")

        if not kid:
            logger.info("Token missing kid in header", issuer=issuer, profile=profile.name)
            raise MissingKeyIdError(details={"issuer": issuer})

        if header.get("alg") != ASAP_ALGORITHM:
            logger.info("Unsupported token algorithm", alg=header.get("alg"), kid=kid, issuer=issuer)
            raise InvalidSignatureOrClaimsError("unsupported algorithm", details={"kid": kid, "issuer": issuer})

        if not isinstance(kid, str) or not isinstance(issuer, (str, type(None))):
            logger.info("Malformed kid or issuer", profile=profile.name)
            raise InvalidSignatureOrClaimsError("malformed token")

        pub_key = await self.key_cache.get_key(issuer, kid)

        try:
            claims = jwt.decode(
                token,
                pub_key,
                algorithms=[ASAP_ALGORITHM],
                audience=profile.accepted_audience,
                options={"require": ["iss", "aud"]},
            )
        except jwt.InvalidTokenError as e:
            logger.info("Token rejected", kid=kid, issuer=issuer, profile=profile.name, error=str(e))
            raise InvalidSignatureOrClaimsError(str(e), details={"kid": kid, "issuer": issuer}) from e
        except (jwt.InvalidKeyError, ValueError) as e:
            # Key server returned something that is not a public key
            logger.error("Unusable public key", kid=kid, issuer=issuer, exc_info=True)
            raise InvalidSignatureOrClaimsError("invalid public key", details={"kid": kid, "issuer": issuer}) from e

        if claims["iss"] not in profile.accepted_issuers:
            logger.info("Token issuer not accepted", kid=kid, issuer=issuer, profile=profile.name)
            raise InvalidSignatureOrClaimsError("issuer not accepted", details={"kid": kid, "issuer": issuer})

        logger.debug("Token verified", kid=kid, issuer=issuer, profile=profile.name)
        return claims

    async def verify_system(self, token: str | None) -> dict[str, Any]:
        """Verify a token presented by an internal caller"""
        return await self.verify(token, self.system_profile)

    async def verify_jitsi(self, token: str | None) -> dict[str, Any]:
        """Verify a token presented by an end-user facing caller"""
        return await self.verify(token, self.jitsi_profile)
