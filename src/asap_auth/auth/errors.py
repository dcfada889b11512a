from enum import Enum


class ErrorKind(Enum):
    """Tagged error kinds surfaced by the ASAP core"""

    # Verification errors
    MISSING_KEY_ID = "ASAP_001"
    UNRESOLVABLE_ISSUER_OR_KEY_ID = "ASAP_002"
    KEY_FETCH_FAILURE = "ASAP_003"
    INVALID_SIGNATURE_OR_CLAIMS = "ASAP_004"

    # Boundary only, never raised by the core
    FORBIDDEN = "ASAP_005"

    # Startup errors
    CONFIGURATION_ERROR = "CONFIG_001"


AUTHORIZATION_FAILURES = frozenset(
    {
        ErrorKind.MISSING_KEY_ID,
        ErrorKind.UNRESOLVABLE_ISSUER_OR_KEY_ID,
        ErrorKind.KEY_FETCH_FAILURE,
        ErrorKind.INVALID_SIGNATURE_OR_CLAIMS,
    }
)


class AsapError(Exception):
    """Base exception for ASAP errors"""

    kind: ErrorKind

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def is_authorization_failure(self) -> bool:
        """Whether the boundary should answer with a plain 401"""
        return self.kind in AUTHORIZATION_FAILURES

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class MissingKeyIdError(AsapError):
    """Raised when a token or lookup carries no key id"""

    kind = ErrorKind.MISSING_KEY_ID

    def __init__(self, message: str = "kid is required in header", details: dict | None = None):
        super().__init__(message, details)


class UnresolvableIssuerOrKeyIdError(AsapError):
    """Raised when no base URL mapping matches the issuer and key id"""

    kind = ErrorKind.UNRESOLVABLE_ISSUER_OR_KEY_ID

    def __init__(self, message: str = "invalid issuer or kid", details: dict | None = None):
        super().__init__(message, details)


class KeyFetchFailureError(AsapError):
    """Raised when the public key could not be downloaded"""

    kind = ErrorKind.KEY_FETCH_FAILURE

    def __init__(self, message: str = "error obtaining asap pub key", details: dict | None = None):
        super().__init__(message, details)


class InvalidSignatureOrClaimsError(AsapError):
    """Raised when signature, algorithm, audience or issuer checks fail"""

    kind = ErrorKind.INVALID_SIGNATURE_OR_CLAIMS

    def __init__(self, message: str = "invalid token", details: dict | None = None):
        super().__init__(message, details)


class ForbiddenError(AsapError):
    """Raised by route handlers for an explicitly forbidden request"""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "forbidden", details: dict | None = None):
        super().__init__(message, details)


class ConfigurationError(AsapError):
    """Raised when a required startup value is missing or invalid"""

    kind = ErrorKind.CONFIGURATION_ERROR

    def __init__(self, message: str = "invalid configuration", details: dict | None = None):
        super().__init__(message, details)
