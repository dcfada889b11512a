# Assumptions:
# - The signing key is a PEM file on local disk
# - Every accepted system issuer publishes keys at the configured mappings
# - Components are built once at startup and shared by all requests

from dataclasses import dataclass

import httpx
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from ..application.use_cases.generate_tokens import TokenGenerationUseCase
from ..auth.errors import ConfigurationError
from ..auth.jwt_verify import TokenVerifier
from ..auth.key_resolution import KeyResolutionPolicy
from ..auth.public_keys import PublicKeyCache
from ..auth.service_tokens import OutboundTokenCache, create_asap_http_client
from ..auth.signing import TokenSigner
from ..config.settings import ServiceSettings, load_settings
from ..http.client import AuthenticatedHttpClient, HttpClient
from ..logging.setup import RequestContextMiddleware, setup_logging
from .api.token_routes import router as token_router
from .middleware.authorization import AsapAuthorizationMiddleware
from .middleware.errors import ErrorHandlingMiddleware

SERVICE_NAME = "jitsi-token-generator"

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AsapComponents:
    """Long-lived collaborators shared by all requests"""

    key_cache: PublicKeyCache
    verifier: TokenVerifier
    signer: TokenSigner
    outbound_tokens: OutboundTokenCache
    asap_http_client: AuthenticatedHttpClient
    token_generation: TokenGenerationUseCase


def build_components(
    settings: ServiceSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsapComponents:
    """Wire the ASAP core from settings"""
    policy = KeyResolutionPolicy(settings.issuer_map(), settings.key_prefix_pattern)
    key_fetch_client = HttpClient(
        timeout=settings.request_timeout,
        max_retries=settings.request_retry_count,
        transport=transport,
    )
    key_cache = PublicKeyCache(policy, key_fetch_client, ttl=settings.asap_pub_key_ttl)

    verifier = TokenVerifier(
        key_cache,
        system_profile=settings.system_profile(),
        jitsi_profile=settings.jitsi_profile(),
        protected_api=settings.protected_api,
    )

    signer = TokenSigner(settings.signing_identity(), settings.signing_key_ring())
    outbound_tokens = OutboundTokenCache(signer, cache_ttl=settings.asap_token_cache_ttl)

    return AsapComponents(
        key_cache=key_cache,
        verifier=verifier,
        signer=signer,
        outbound_tokens=outbound_tokens,
        asap_http_client=create_asap_http_client(
            outbound_tokens,
            timeout=settings.request_timeout,
            max_retries=settings.request_retry_count,
            transport=transport,
        ),
        token_generation=TokenGenerationUseCase(signer, settings.key_gen_salt.encode("ascii")),
    )


def create_app(
    settings: ServiceSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or load_settings(ServiceSettings)
    components = build_components(settings, transport=transport)

    logger.info(
        "Starting up jitsi-token-generator service",
        hostname=settings.hostname or None,
        port=settings.port,
        protected_api=settings.protected_api,
        issuers=sorted(settings.issuer_map()),
        kid=settings.asap_jwt_kid,
    )

    app = FastAPI(
        title="Token Generator",
        description="ASAP token generation for jitsi components and services",
        version="1.0.0",
    )

    app.state.settings = settings
    app.state.components = components
    app.state.token_generation = components.token_generation

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    app.include_router(token_router)

    # Last added runs first
    app.add_middleware(
        AsapAuthorizationMiddleware,
        verifier=components.verifier,
        profile=components.verifier.system_profile,
        exempt_paths=settings.exempt_paths,
    )
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    return app


def main() -> None:
    """Run the token generator service"""
    try:
        settings = load_settings(ServiceSettings)
    except ConfigurationError as e:
        setup_logging(service_name=SERVICE_NAME)
        logger.critical("Refusing to start", error=str(e), **e.details)
        raise SystemExit(1) from e

    setup_logging(service_name=SERVICE_NAME, level=settings.log_level, format_type=settings.log_format)

    try:
        app = create_app(settings)
    except ConfigurationError as e:
        logger.critical("Refusing to start", error=str(e), **e.details)
        raise SystemExit(1) from e

    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
