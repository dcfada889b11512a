"""Command line token generator: prints one signed ASAP token."""

import argparse
import os
import sys

import structlog

from .auth.errors import ConfigurationError
from .auth.signing import SignOptions, TokenSigner
from .config.settings import SigningSettings, load_settings
from .logging.setup import setup_logging

logger = structlog.get_logger(__name__)

TOKEN_TYPES = ("server", "client", "component")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asap-token",
        description="Generate an ASAP token signed with ASAP_SIGNING_KEY_FILE",
    )
    parser.add_argument(
        "--type",
        dest="token_type",
        choices=TOKEN_TYPES,
        default=os.environ.get("ASAP_TYPE") or "server",
        help="Kind of token to generate (env ASAP_TYPE)",
    )
    parser.add_argument(
        "--room",
        default=os.environ.get("ASAP_ROOM") or "*",
        help="Room claim for client and component tokens (env ASAP_ROOM)",
    )
    parser.add_argument(
        "--scd",
        default=os.environ.get("ASAP_SCD") or None,
        help="Cluster scope domain claim for server tokens (env ASAP_SCD)",
    )
    return parser


def generate(signer: TokenSigner, token_type: str, room: str = "*", scd: str | None = None) -> str:
    """Generate a token of the given type"""
    if token_type == "server":
        claims = {"scd": scd} if scd else {}
        return signer.server_token(claims)

    if token_type == "client":
        return signer.client_token({"room": room}, SignOptions(expires_in="1 day"))

    if token_type == "component":
        return signer.client_token(
            {"room": room},
            SignOptions(audience="jitsi-component", expires_in="1 day", subject="*"),
        )

    raise ValueError(f"Unknown token type: {token_type}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(service_name="asap-token", level="WARNING", format_type="console", stream=sys.stderr)

    try:
        settings = load_settings(SigningSettings)
        signer = TokenSigner(settings.signing_identity(), settings.signing_key_ring())
    except ConfigurationError as e:
        logger.error("Cannot generate token", error=str(e))
        return 1

    print(generate(signer, args.token_type, room=args.room, scd=args.scd))
    return 0


if __name__ == "__main__":
    sys.exit(main())
