import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request

from ...application.use_cases.generate_tokens import TokenGenerationUseCase
from ..schema.token_schemas import (
    ClientTokenResponse,
    ComponentTokenRequest,
    ServerTokenRequest,
    TokenResponse,
)

router = APIRouter(prefix="/generate")
logger = structlog.get_logger(__name__)


class MalformedRequestError(ValueError):
    """Raised when the request body is not a JSON object"""


def get_token_generation_use_case(request: Request) -> TokenGenerationUseCase:
    """Dependency to get the token generation use case"""
    return request.app.state.token_generation


async def read_inputs(request: Request) -> dict[str, Any]:
    """Query parameters overridden by the JSON body, if any"""
    inputs: dict[str, Any] = dict(request.query_params)

    raw_body = await request.body()
    if raw_body:
        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError as e:
            raise MalformedRequestError(f"Invalid JSON body: {e}") from e
        if not isinstance(body, dict):
            raise MalformedRequestError("Request body must be a JSON object")
        inputs.update(body)

    return inputs


@router.api_route("/server", methods=["GET", "POST"], response_model=TokenResponse)
async def generate_server_token(
    inputs: dict[str, Any] = Depends(read_inputs),
    use_case: TokenGenerationUseCase = Depends(get_token_generation_use_case),
):
    """Issue a token carrying the service identity"""
    overrides = ServerTokenRequest.model_validate(inputs).to_sign_options()
    token = use_case.generate_server_token(overrides)

    logger.info("Server token issued", aud=overrides.audience, kid=overrides.keyid)
    return TokenResponse(token=token)


@router.api_route("/component", methods=["GET", "POST"], response_model=TokenResponse)
async def generate_component_token(
    inputs: dict[str, Any] = Depends(read_inputs),
    use_case: TokenGenerationUseCase = Depends(get_token_generation_use_case),
):
    """Issue a token for a meeting component"""
    component = ComponentTokenRequest.model_validate(inputs)
    token = use_case.generate_component_token(
        room=component.room,
        tenant=component.tenant,
        domain=component.domain,
        token_type=component.token_type,
    )

    logger.info("Component token issued", tenant=component.tenant, token_type=component.token_type)
    return TokenResponse(token=token)


@router.post("/client", response_model=ClientTokenResponse)
async def generate_client_token(
    request: Request,
    inputs: dict[str, Any] = Depends(read_inputs),
    use_case: TokenGenerationUseCase = Depends(get_token_generation_use_case),
):
    """Issue an end-user token whose claims are the request body"""
    payload = await request.json() if await request.body() else {}
    tenant = inputs.get("sub")

    result = use_case.generate_client_token(
        payload,
        tenant=tenant,
        conf_id=inputs.get("confId"),
        e2ee_key=inputs.get("e2eeKey"),
    )

    logger.info("Client token issued", tenant=tenant)
    return ClientTokenResponse(
        token=result.token,
        tenant=result.tenant,
        conf_id=result.conf_id,
        e2ee_key=result.e2ee_key,
    )
