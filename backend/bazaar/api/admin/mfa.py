from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.guards import require_admin
from ...auth.identity_provider import IdentityProvider
from ...auth.principal import AuthenticatedUser
from ...dependencies import get_db, get_identity_provider
from ...schemas.mfa import (
    AllowedCredential,
    MfaStatusResponse,
    MfaVerifyResponse,
    TotpEnrollRequest,
    TotpEnrollResponse,
    TotpVerifyRequest,
    WebAuthnChallengeResponse,
    WebAuthnCredentialCreate,
    WebAuthnVerifyRequest,
)
from ...services.mfa import MfaService


router = APIRouter(prefix="/admin/mfa", tags=["admin-mfa"])


def get_mfa_service(
    db: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> MfaService:
    return MfaService(db, identity_provider)


@router.get("/status", response_model=MfaStatusResponse)
async def mfa_status(
    request: Request,
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> MfaStatusResponse:
    enabled, method, state = await service.get_status(
        current_user, request.state.access_token
    )
    return MfaStatusResponse(enabled=enabled, method=method, state=state.value)


@router.post("/totp/enroll", response_model=TotpEnrollResponse)
async def enroll_totp(
    request: Request,
    payload: TotpEnrollRequest | None = None,
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> TotpEnrollResponse:
    enrollment = await service.enroll_totp(
        current_user,
        request.state.access_token,
        friendly_name=payload.friendly_name if payload else None,
    )
    return TotpEnrollResponse(
        factor_id=enrollment.factor_id,
        secret=enrollment.secret,
        qr_code=enrollment.qr_code,
        uri=enrollment.uri,
    )


@router.post("/totp/verify", response_model=MfaVerifyResponse)
async def verify_totp(
    payload: TotpVerifyRequest,
    request: Request,
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> MfaVerifyResponse:
    await service.verify_totp(
        current_user,
        request.state.access_token,
        payload.factor_id,
        payload.code,
        payload.enroll,
        request=request,
    )
    return MfaVerifyResponse()


@router.post("/webauthn/credentials", response_model=MfaVerifyResponse)
async def register_webauthn_credential(
    payload: WebAuthnCredentialCreate,
    request: Request,
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> MfaVerifyResponse:
    await service.register_webauthn_credential(
        current_user,
        payload.credential_id,
        payload.public_key,
        payload.transports,
        request=request,
    )
    return MfaVerifyResponse(verified=False)


@router.post("/webauthn/challenge", response_model=WebAuthnChallengeResponse)
async def webauthn_challenge(
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> WebAuthnChallengeResponse:
    challenge, expires_at, credentials = await service.issue_webauthn_challenge(current_user)
    return WebAuthnChallengeResponse(
        challenge=challenge,
        expires_at=expires_at,
        allow_credentials=[
            AllowedCredential(id=cred.credential_id, transports=cred.transports or [])
            for cred in credentials
        ],
    )


@router.post("/webauthn/verify", response_model=MfaVerifyResponse)
async def verify_webauthn(
    payload: WebAuthnVerifyRequest,
    request: Request,
    current_user: AuthenticatedUser = Depends(require_admin()),
    service: MfaService = Depends(get_mfa_service),
) -> MfaVerifyResponse:
    await service.verify_webauthn(
        current_user,
        payload.credential_id,
        payload.client_data_json,
        request=request,
    )
    return MfaVerifyResponse()
