"""ASAP token signing and verification."""

from .errors import (
    AsapError,
    ConfigurationError,
    ErrorKind,
    ForbiddenError,
    InvalidSignatureOrClaimsError,
    KeyFetchFailureError,
    MissingKeyIdError,
    UnresolvableIssuerOrKeyIdError,
)
from .jwt_verify import ClaimProfile, TokenVerifier
from .key_resolution import BaseUrlMapping, KeyResolutionPolicy
from .public_keys import PublicKeyCache, public_key_url
from .service_tokens import OutboundTokenCache, create_asap_http_client
from .signing import SigningIdentity, SigningKeyRing, SignOptions, TokenSigner, parse_duration
from .ttl_cache import TTLCache

__all__ = [
    "AsapError",
    "ErrorKind",
    "MissingKeyIdError",
    "UnresolvableIssuerOrKeyIdError",
    "KeyFetchFailureError",
    "InvalidSignatureOrClaimsError",
    "ForbiddenError",
    "ConfigurationError",
    "BaseUrlMapping",
    "KeyResolutionPolicy",
    "TTLCache",
    "PublicKeyCache",
    "public_key_url",
    "ClaimProfile",
    "TokenVerifier",
    "SigningIdentity",
    "SigningKeyRing",
    "SignOptions",
    "TokenSigner",
    "parse_duration",
    "OutboundTokenCache",
    "create_asap_http_client",
]
