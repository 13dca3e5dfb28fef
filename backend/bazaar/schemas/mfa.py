from datetime import datetime

from pydantic import BaseModel, Field


class MfaStatusResponse(BaseModel):
    enabled: bool
    method: str | None = None
    state: str


class TotpEnrollRequest(BaseModel):
    friendly_name: str | None = Field(None, alias="friendlyName", max_length=100)

    class Config:
        populate_by_name = True


class TotpEnrollResponse(BaseModel):
    factor_id: str = Field(..., alias="factorId")
    secret: str
    qr_code: str = Field(..., alias="qrCode")
    uri: str

    class Config:
        populate_by_name = True


class TotpVerifyRequest(BaseModel):
    factor_id: str = Field(..., alias="factorId", min_length=1)
    code: str = Field(..., pattern=r"^\d{6}$")
    enroll: bool = False

    class Config:
        populate_by_name = True


class WebAuthnCredentialCreate(BaseModel):
    credential_id: str = Field(..., alias="credentialId", min_length=1, max_length=1024)
    public_key: str = Field(..., alias="publicKey", min_length=1)
    transports: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class AllowedCredential(BaseModel):
    id: str
    transports: list[str] = Field(default_factory=list)


class WebAuthnChallengeResponse(BaseModel):
    challenge: str
    expires_at: datetime = Field(..., alias="expiresAt")
    allow_credentials: list[AllowedCredential] = Field(..., alias="allowCredentials")

    class Config:
        populate_by_name = True


class WebAuthnVerifyRequest(BaseModel):
    credential_id: str = Field(..., alias="credentialId", min_length=1)
    authenticator_data: str = Field(..., alias="authenticatorData", min_length=1)
    client_data_json: str = Field(..., alias="clientDataJSON", min_length=1)
    signature: str = Field(..., min_length=1)

    class Config:
        populate_by_name = True


class MfaVerifyResponse(BaseModel):
    success: bool = True
    verified: bool = True
