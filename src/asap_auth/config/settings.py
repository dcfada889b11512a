# Assumptions:
# - Configuration comes from environment variables, optionally a .env file
# - Settings are read once at startup and never mutated
# - A missing required value stops the process before it serves traffic

import secrets

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..auth.errors import ConfigurationError
from ..auth.jwt_verify import ClaimProfile
from ..auth.key_resolution import DEFAULT_KID_PREFIX_PATTERN, BaseUrlMapping
from ..auth.signing import SigningIdentity, SigningKeyRing


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseUrlMappingConfig(BaseModel):
    """Key server mapping as written in SYSTEM_ASAP_BASE_URL_MAPPINGS"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    base_url: str = Field(alias="baseUrl")
    kid: str | None = None
    append_kid_prefix: bool = Field(default=False, alias="appendKidPrefix")

    def to_mapping(self) -> BaseUrlMapping:
        return BaseUrlMapping(
            base_url=self.base_url,
            kid_pattern=self.kid or None,
            append_kid_prefix=self.append_kid_prefix,
        )


class SigningSettings(BaseSettings):
    """Settings needed to sign tokens"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, frozen=True, extra="ignore")

    asap_jwt_iss: str = "jitsi-token-generator"
    asap_jwt_aud: str = "jitsi"
    asap_jwt_kid: str
    asap_jwt_sub: str | None = None
    asap_jwt_expires_in: int = 3600
    asap_jwt_nbf_skew: int = 300

    # Private keys
    asap_signing_key_file: str
    asap_signing_key_files: dict[str, str] = Field(default_factory=dict)

    def signing_identity(self) -> SigningIdentity:
        return SigningIdentity(
            issuer=self.asap_jwt_iss,
            audience=self.asap_jwt_aud,
            key_id=self.asap_jwt_kid,
            subject=self.asap_jwt_sub or None,
            expires_in=self.asap_jwt_expires_in,
            not_before_skew=self.asap_jwt_nbf_skew,
        )

    def signing_key_ring(self) -> SigningKeyRing:
        return SigningKeyRing.from_files(self.asap_signing_key_file, self.asap_signing_key_files)


class ServiceSettings(SigningSettings):
    """Settings of the token generator service"""

    # Service
    port: int = 8017
    hostname: str = ""
    log_level: str = "info"
    log_format: str = "json"

    # Verification
    protected_api: bool = True
    no_auth_paths: str = ""
    asap_pub_key_ttl: int = Field(default=3600, gt=0)
    key_prefix_pattern: str = DEFAULT_KID_PREFIX_PATTERN
    request_timeout_ms: int = 8000
    request_retry_count: int = Field(default=2, ge=0)
    system_asap_base_url_mappings: list[BaseUrlMappingConfig]
    system_asap_jwt_accepted_hook_iss: str
    system_asap_jwt_aud: str
    jitsi_asap_jwt_aud: str | None = None
    jitsi_asap_jwt_accepted_iss: str | None = None

    # Outbound calls
    asap_token_cache_ttl: int = Field(default=60 * 45, gt=0)

    # Conference id and e2ee key derivation
    key_gen_salt: str = Field(default_factory=lambda: secrets.token_hex(16))

    @field_validator("key_gen_salt")
    @classmethod
    def salt_is_ascii(cls, value: str) -> str:
        if not value or not value.isascii():
            raise ValueError("salt must be a non-empty ASCII string")
        return value

    @property
    def request_timeout(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def exempt_paths(self) -> frozenset[str]:
        return frozenset(_split(self.no_auth_paths))

    def issuer_map(self) -> dict[str, tuple[BaseUrlMapping, ...]]:
        """Every issuer accepted by either profile shares the configured mapping table"""
        mappings = tuple(mapping.to_mapping() for mapping in self.system_asap_base_url_mappings)
        issuers = self.system_profile().accepted_issuers | self.jitsi_profile().accepted_issuers
        return {issuer: mappings for issuer in sorted(issuers)}

    def system_profile(self) -> ClaimProfile:
        return ClaimProfile.create(
            name="system",
            accepted_audience=self.system_asap_jwt_aud,
            accepted_issuers=_split(self.system_asap_jwt_accepted_hook_iss),
        )

    def jitsi_profile(self) -> ClaimProfile:
        accepted_issuers = self.jitsi_asap_jwt_accepted_iss or self.system_asap_jwt_accepted_hook_iss
        return ClaimProfile.create(
            name="jitsi",
            accepted_audience=self.jitsi_asap_jwt_aud or self.system_asap_jwt_aud,
            accepted_issuers=_split(accepted_issuers),
        )


def load_settings(settings_cls: type[SigningSettings] = ServiceSettings, **overrides) -> SigningSettings:
    """
    Read settings from the environment

    Raises:
        ConfigurationError: a required value is missing or invalid
    """
    try:
        return settings_cls(**overrides)
    except ValidationError as e:
        missing = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        raise ConfigurationError(f"Invalid configuration: {', '.join(missing)}", details={"fields": missing}) from e
