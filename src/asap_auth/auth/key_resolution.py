import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

from .errors import ConfigurationError, UnresolvableIssuerOrKeyIdError

logger = structlog.get_logger(__name__)

DEFAULT_KID_PREFIX_PATTERN = r"^(.*)/(.*)$"


@dataclass(frozen=True)
class BaseUrlMapping:
    """One rule for locating the key server of an issuer"""

    base_url: str
    kid_pattern: str | None = None
    append_kid_prefix: bool = False

    @property
    def is_catch_all(self) -> bool:
        return not self.kid_pattern


IssuerMap = Mapping[str, tuple[BaseUrlMapping, ...]]


def _compile(pattern: str, name: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid {name} pattern {pattern!r}: {e}") from e


class KeyResolutionPolicy:
    """Maps an (issuer, kid) pair to the base URL of its public key server"""

    def __init__(
        self,
        issuer_map: Mapping[str, Iterable[BaseUrlMapping]],
        kid_prefix_pattern: str | re.Pattern = DEFAULT_KID_PREFIX_PATTERN,
    ):
        self.issuer_map: IssuerMap = {issuer: tuple(mappings) for issuer, mappings in issuer_map.items()}

        if isinstance(kid_prefix_pattern, re.Pattern):
            self.kid_prefix_pattern = kid_prefix_pattern
        else:
            self.kid_prefix_pattern = _compile(kid_prefix_pattern, "kid prefix")

        if self.kid_prefix_pattern.groups < 1:
            raise ConfigurationError("Kid prefix pattern must have a capturing group")

        self._kid_patterns = {
            mapping.kid_pattern: _compile(mapping.kid_pattern, "kid")
            for mappings in self.issuer_map.values()
            for mapping in mappings
            if not mapping.is_catch_all
        }

    def resolve(self, issuer: str | None, kid: str) -> str:
        """
        Return the base URL for the first mapping matching the key id

        Raises:
            UnresolvableIssuerOrKeyIdError: unknown issuer or no mapping matched
        """
        mappings = self.issuer_map.get(issuer) if isinstance(issuer, str) else None
        if mappings is None:
            logger.warning("No public key URL mapping found", issuer=issuer, kid=kid)
            raise UnresolvableIssuerOrKeyIdError(details={"issuer": issuer, "kid": kid})

        for mapping in mappings:
            if mapping.is_catch_all:
                logger.debug("Found pub key url mapping", base_url=mapping.base_url)
                return mapping.base_url

            if not self._kid_patterns[mapping.kid_pattern].search(kid):
                continue

            if not mapping.append_kid_prefix:
                logger.debug("Found pub key url mapping by kid pattern", base_url=mapping.base_url)
                return mapping.base_url

            # A kid without a prefix falls through to the next rule
            prefix_match = self.kid_prefix_pattern.search(kid)
            if prefix_match:
                base_url = f"{mapping.base_url}/{prefix_match.group(1)}"
                logger.debug("Found pub key url mapping by kid pattern and prefix", base_url=base_url)
                return base_url

        logger.info("No public key URL mapping matched kid", issuer=issuer, kid=kid)
        raise UnresolvableIssuerOrKeyIdError(details={"issuer": issuer, "kid": kid})
