from dataclasses import dataclass
from typing import Any

import structlog

from ...auth.signing import SignOptions, TokenSigner
from ..key_derivation import generate_key

logger = structlog.get_logger(__name__)

SERVER_TOKEN_DEFAULTS = SignOptions(audience="jitsi-token-generator", expires_in="1 hour")
COMPONENT_TOKEN_DEFAULTS = SignOptions(issuer="jaas-components", expires_in="1 day")
CLIENT_TOKEN_DEFAULTS = SignOptions(audience="jitsi", issuer="chat", expires_in="2 hours")


@dataclass(frozen=True)
class ClientTokenResult:
    token: str
    tenant: str | None = None
    conf_id: str | None = None
    e2ee_key: str | None = None


def _is_set(flag: Any) -> bool:
    return flag is True or str(flag).lower() == "true"


class TokenGenerationUseCase:
    """Use cases behind the /generate endpoints"""

    def __init__(self, signer: TokenSigner, key_gen_salt: bytes):
        self.signer = signer
        self.key_gen_salt = key_gen_salt

    def generate_server_token(self, overrides: SignOptions | None = None, claims: dict[str, Any] | None = None) -> str:
        """Service token; request options override the endpoint defaults"""
        options = (overrides or SignOptions()).merged_over(SERVER_TOKEN_DEFAULTS)
        return self.signer.server_token(claims or {}, options)

    def generate_component_token(
        self,
        room: str | None = None,
        tenant: str | None = None,
        domain: str | None = None,
        token_type: str | None = None,
    ) -> str:
        """
        Token for a meeting component such as jigasi

        Args:
            room: Target room, any room when empty
            tenant: Tenant used as subject
            domain: Fallback subject, also part of the jigasi audience
            token_type: "JIGASI" selects the jigasi audience
        """
        logger.debug("Component token inputs", room=room, tenant=tenant, domain=domain, token_type=token_type)

        audience = None
        if token_type == "JIGASI":
            audience = f"jigasi.{domain}"

        options = SignOptions(subject=tenant or domain or "*", audience=audience).merged_over(COMPONENT_TOKEN_DEFAULTS)
        return self.signer.client_token({"room": room or "*"}, options)

    def generate_client_token(
        self,
        payload: dict[str, Any],
        tenant: str | None = None,
        conf_id: Any = None,
        e2ee_key: Any = None,
    ) -> ClientTokenResult:
        """
        End-user token built from the request payload

        With `conf_id` set the room claim is replaced by a key derived from
        "<tenant>/<room>"; with `e2ee_key` set a key derived from the room is
        returned alongside the token.
        """
        payload = dict(payload)
        original_room = payload.get("room")

        derived_conf_id = None
        if _is_set(conf_id):
            derived_conf_id = generate_key(f"{tenant}/{original_room}", self.key_gen_salt)
            payload["room"] = derived_conf_id

        token = self.signer.client_token(payload, CLIENT_TOKEN_DEFAULTS)

        derived_e2ee_key = None
        if _is_set(e2ee_key):
            derived_e2ee_key = generate_key(str(original_room), self.key_gen_salt)

        return ClientTokenResult(token=token, tenant=tenant, conf_id=derived_conf_id, e2ee_key=derived_e2ee_key)
