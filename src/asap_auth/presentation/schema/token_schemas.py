from pydantic import BaseModel, ConfigDict, Field

from ...auth.signing import SignOptions


class ServerTokenRequest(BaseModel):
    """Sign option overrides for a server token"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    audience: str | None = None
    issuer: str | None = None
    subject: str | None = None
    keyid: str | None = None
    expires_in: int | str | None = Field(default=None, alias="expiresIn")
    jwtid: str | None = None

    def to_sign_options(self) -> SignOptions:
        return SignOptions.from_dict(self.model_dump())


class ComponentTokenRequest(BaseModel):
    """Component token request"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    domain: str | None = None
    room: str | None = None
    tenant: str | None = None
    token_type: str | None = Field(default=None, alias="tokenType")


class TokenResponse(BaseModel):
    token: str


class ClientTokenResponse(BaseModel):
    """Client token response"""

    model_config = ConfigDict(populate_by_name=True)

    token: str
    tenant: str | None = None
    conf_id: str | None = Field(default=None, alias="confId")
    e2ee_key: str | None = Field(default=None, alias="e2eeKey")

