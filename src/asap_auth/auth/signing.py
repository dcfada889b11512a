import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import jwt
import structlog

from .errors import ConfigurationError

logger = structlog.get_logger(__name__)

ASAP_ALGORITHM = "RS256"

_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {
    "": 1,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}

Duration = int | float | str


def parse_duration(value: Duration) -> int:
    """
    Convert a duration to whole seconds

    Accepts numbers (seconds) or strings such as "90", "45m", "1 hour", "2 days".
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)

    match = _DURATION_RE.match(value)
    if not match or match.group(2).lower() not in _UNIT_SECONDS:
        raise ValueError(f"Invalid duration: {value!r}")

    return int(float(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()])


@dataclass(frozen=True)
class SigningIdentity:
    """Default claims of the tokens issued by this process"""

    issuer: str
    audience: str
    key_id: str
    subject: str | None = None
    expires_in: int = 3600
    not_before_skew: int = 300

    @property
    def algorithm(self) -> str:
        return ASAP_ALGORITHM


@dataclass(frozen=True)
class SignOptions:
    """Per-call overrides; fields left as None keep the identity default"""

    audience: str | None = None
    issuer: str | None = None
    subject: str | None = None
    keyid: str | None = None
    expires_in: Duration | None = None
    not_before_skew: Duration | None = None
    jwtid: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SignOptions":
        """Build options from a mapping, ignoring unknown keys"""
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in names and value is not None})

    def merged_over(self, defaults: "SignOptions") -> "SignOptions":
        """Field by field override of `defaults` by the fields set here"""
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            values[f.name] = value if value is not None else getattr(defaults, f.name)
        return SignOptions(**values)


class SigningKeyRing:
    """Private signing keys by key id, with a designated default key"""

    def __init__(self, default_key: bytes, keys: Mapping[str, bytes] | None = None):
        self.default_key = default_key
        self._keys = dict(keys or {})

    def get(self, kid: str | None) -> bytes:
        """Key for `kid`, or the default key when the ring has no such kid"""
        if kid is not None and kid in self._keys:
            return self._keys[kid]
        return self.default_key

    def __contains__(self, kid: str) -> bool:
        return kid in self._keys

    @classmethod
    def from_files(
        cls,
        default_key_file: str | Path,
        key_files: Mapping[str, str | Path] | None = None,
    ) -> "SigningKeyRing":
        """Load the ring from PEM files on disk"""
        default_key = _read_key_file(default_key_file)
        keys = {kid: _read_key_file(path) for kid, path in (key_files or {}).items()}
        return cls(default_key, keys)


def _read_key_file(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Unable to read signing key file {path}: {e}") from e


class TokenSigner:
    """Issues RS256 ASAP tokens for a signing identity"""

    def __init__(self, identity: SigningIdentity, key_ring: SigningKeyRing):
        self.identity = identity
        self.key_ring = key_ring
        self.default_options = SignOptions(
            audience=identity.audience,
            issuer=identity.issuer,
            subject=identity.subject,
            keyid=identity.key_id,
            expires_in=identity.expires_in,
            not_before_skew=identity.not_before_skew,
        )

    def server_token(self, claims: Mapping[str, Any] | None = None, options: SignOptions | None = None) -> str:
        """Token carrying the service identity, e.g. with a routing scope claim"""
        logger.debug("serverToken generation")
        return self.sign(claims or {}, options)

    def client_token(self, payload: Mapping[str, Any], options: SignOptions | None = None) -> str:
        """Token for an end-user or component, usually naming a target room"""
        return self.sign(payload, options)

    def sign(self, claims: Mapping[str, Any], options: SignOptions | None = None) -> str:
        """
        Sign `claims` with the effective options

        Args:
            claims: Arbitrary private claims
            options: Overrides of the identity defaults

        Returns:
            Compact JWS string
        """
        effective = (options or SignOptions()).merged_over(self.default_options)
        now = int(time.time())

        payload = dict(claims)
        payload.update(
            {
                "iss": effective.issuer,
                "aud": effective.audience,
                "iat": now,
                "nbf": now - parse_duration(effective.not_before_skew),
                "exp": now + parse_duration(effective.expires_in),
            }
        )
        if effective.subject:
            payload["sub"] = effective.subject
        if effective.jwtid:
            payload["jti"] = effective.jwtid

        signing_key = self.key_ring.get(effective.keyid)

        logger.debug("New JWT generation", kid=effective.keyid, iss=effective.issuer, aud=effective.audience)
        return jwt.encode(payload, signing_key, algorithm=ASAP_ALGORITHM, headers={"kid": effective.keyid})
