"""
Admin multi-factor flow.

TOTP factors live at the identity provider; this service only forwards the
enroll/challenge/verify calls and records the outcome on the profile.

WebAuthn is a pass-through: the server issues a random challenge (one per
user, five-minute lifetime) and checks on verification that the credential
belongs to the caller, the challenge exists and is unexpired, and that the
client echoed that challenge. The assertion signature is NOT checked against
the stored public key.
"""
from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.identity_provider import (
    IdentityProvider,
    IdentityServiceError,
    InvalidCredentialError,
    ProviderRejectedError,
    TotpEnrollment,
)
from ..auth.principal import AuthenticatedUser
from ..crud.profile import ProfileRepository
from ..crud.webauthn import WebAuthnRepository
from ..errors import (
    AuthServiceUnavailable,
    MfaVerificationFailed,
    NotFoundError,
    ValidationError,
)
from ..models.profile import Profile
from ..models.webauthn import WebAuthnChallenge, WebAuthnCredential
from .audit.audit_service import MFA_ENABLED, MFA_VERIFIED, AdminAuditService


logger = logging.getLogger("bazaar.mfa")

CHALLENGE_TTL = timedelta(minutes=5)
CHALLENGE_BYTES = 32


class MfaState(str, Enum):
    NOT_ENROLLED = "not_enrolled"
    ENROLLED = "enrolled"
    CHALLENGE_ISSUED = "challenge_issued"
    VERIFIED = "verified"
    EXPIRED = "expired"


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def compute_mfa_state(
    *,
    mfa_enabled: bool,
    mfa_verified_at: datetime | None,
    session_started_at: datetime | None,
    challenge_expires_at: datetime | None,
    now: datetime,
) -> MfaState:
    if not mfa_enabled:
        return MfaState.NOT_ENROLLED
    if (
        mfa_verified_at is not None
        and session_started_at is not None
        and _utc(mfa_verified_at) >= _utc(session_started_at)
    ):
        return MfaState.VERIFIED
    if challenge_expires_at is not None:
        if _utc(challenge_expires_at) <= now:
            return MfaState.EXPIRED
        return MfaState.CHALLENGE_ISSUED
    return MfaState.ENROLLED


def _b64decode_any(value: str) -> bytes:
    """Decode standard or URL-safe base64, with or without padding."""
    cleaned = value.strip()
    padded = cleaned + "=" * (-len(cleaned) % 4)
    if "-" in cleaned or "_" in cleaned:
        return base64.urlsafe_b64decode(padded)
    return base64.b64decode(padded, validate=True)


def challenge_from_client_data(client_data_json: str) -> bytes:
    try:
        client_data = json.loads(_b64decode_any(client_data_json))
        return _b64decode_any(str(client_data["challenge"]))
    except (binascii.Error, ValueError, KeyError, TypeError) as exc:
        raise MfaVerificationFailed("Malformed client data") from exc


class MfaService:
    def __init__(self, session: AsyncSession, identity_provider: IdentityProvider):
        self.session = session
        self.identity_provider = identity_provider
        self.profile_repo = ProfileRepository(session)
        self.webauthn_repo = WebAuthnRepository(session)
        self.audit = AdminAuditService(session)

    async def _profile(self, user: AuthenticatedUser) -> Profile:
        return await self.profile_repo.ensure(uuid.UUID(user.id), user.email)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(
        self, user: AuthenticatedUser, access_token: str
    ) -> tuple[bool, str | None, MfaState]:
        profile = await self._profile(user)
        challenge = await self.webauthn_repo.get_challenge(profile.id)
        try:
            provider_user = await self.identity_provider.get_user(access_token)
        except InvalidCredentialError as exc:
            raise MfaVerificationFailed("Session is no longer valid") from exc
        except IdentityServiceError as exc:
            raise AuthServiceUnavailable() from exc
        state = compute_mfa_state(
            mfa_enabled=profile.mfa_enabled,
            mfa_verified_at=profile.mfa_verified_at,
            session_started_at=provider_user.session_started_at,
            challenge_expires_at=challenge.expires_at if challenge else None,
            now=datetime.now(timezone.utc),
        )
        return profile.mfa_enabled, profile.mfa_method, state

    # ------------------------------------------------------------------
    # TOTP
    # ------------------------------------------------------------------

    async def enroll_totp(
        self, user: AuthenticatedUser, access_token: str, friendly_name: str | None = None
    ) -> TotpEnrollment:
        try:
            enrollment = await self.identity_provider.enroll_totp(
                access_token, friendly_name=friendly_name
            )
        except ProviderRejectedError as exc:
            raise ValidationError(exc.message, code="MFA_ENROLL_FAILED") from exc
        except InvalidCredentialError as exc:
            raise MfaVerificationFailed("Session is no longer valid") from exc
        except IdentityServiceError as exc:
            raise AuthServiceUnavailable() from exc
        logger.info("TOTP enrollment started user_id=%s factor_id=%s", user.id, enrollment.factor_id)
        return enrollment

    async def verify_totp(
        self,
        user: AuthenticatedUser,
        access_token: str,
        factor_id: str,
        code: str,
        enroll: bool,
        request: Request | None = None,
    ) -> None:
        try:
            challenge_id = await self.identity_provider.challenge_factor(access_token, factor_id)
            await self.identity_provider.verify_factor(access_token, factor_id, challenge_id, code)
        except InvalidCredentialError as exc:
            logger.warning("TOTP verification failed user_id=%s factor_id=%s", user.id, factor_id)
            raise MfaVerificationFailed("Invalid verification code") from exc
        except IdentityServiceError as exc:
            raise AuthServiceUnavailable() from exc

        profile = await self._profile(user)
        if enroll:
            await self.profile_repo.enable_mfa(profile.id, "totp")
            await self.audit.log(
                MFA_ENABLED, profile.id, {"method": "totp", "factorId": factor_id}, request
            )
        await self._mark_verified(profile.id, "totp", request)
        await self.session.commit()

    # ------------------------------------------------------------------
    # WebAuthn
    # ------------------------------------------------------------------

    async def register_webauthn_credential(
        self,
        user: AuthenticatedUser,
        credential_id: str,
        public_key: str,
        transports: list[str],
        request: Request | None = None,
    ) -> WebAuthnCredential:
        profile = await self._profile(user)
        credential = await self.webauthn_repo.create_credential(
            profile.id, credential_id, public_key, transports
        )
        await self.profile_repo.enable_mfa(profile.id, "webauthn")
        await self.audit.log(
            MFA_ENABLED, profile.id, {"method": "webauthn", "credentialId": credential_id}, request
        )
        await self.session.commit()
        logger.info("WebAuthn credential registered user_id=%s", user.id)
        return credential

    async def issue_webauthn_challenge(
        self, user: AuthenticatedUser
    ) -> tuple[str, datetime, list[WebAuthnCredential]]:
        profile_id = uuid.UUID(user.id)
        credentials = await self.webauthn_repo.list_credentials(profile_id)
        if not credentials:
            raise NotFoundError("No WebAuthn credentials found")

        challenge = base64.b64encode(secrets.token_bytes(CHALLENGE_BYTES)).decode("ascii")
        expires_at = datetime.now(timezone.utc) + CHALLENGE_TTL
        await self.webauthn_repo.upsert_challenge(profile_id, challenge, expires_at)
        await self.session.commit()
        return challenge, expires_at, credentials

    async def verify_webauthn(
        self,
        user: AuthenticatedUser,
        credential_id: str,
        client_data_json: str,
        request: Request | None = None,
    ) -> None:
        profile_id = uuid.UUID(user.id)
        credential = await self.webauthn_repo.get_user_credential(profile_id, credential_id)
        if credential is None:
            raise MfaVerificationFailed("Invalid credential")

        stored: WebAuthnChallenge | None = await self.webauthn_repo.get_challenge(profile_id)
        if stored is None:
            raise MfaVerificationFailed("No active challenge found")
        if _utc(stored.expires_at) < datetime.now(timezone.utc):
            raise MfaVerificationFailed("Challenge expired")

        echoed = challenge_from_client_data(client_data_json)
        if not hmac.compare_digest(echoed, base64.b64decode(stored.challenge)):
            logger.warning("WebAuthn challenge mismatch user_id=%s", user.id)
            raise MfaVerificationFailed("Challenge mismatch")

        # TODO: verify the assertion signature against credential.public_key
        now = datetime.now(timezone.utc)
        await self.webauthn_repo.delete_challenge(profile_id)
        await self.webauthn_repo.touch_credential(credential.id, now)
        await self._mark_verified(profile_id, "webauthn", request, verified_at=now)
        await self.session.commit()

    async def _mark_verified(
        self,
        profile_id: uuid.UUID,
        method: str,
        request: Request | None,
        verified_at: datetime | None = None,
    ) -> None:
        await self.profile_repo.mark_mfa_verified(
            profile_id, verified_at or datetime.now(timezone.utc)
        )
        await self.audit.log(MFA_VERIFIED, profile_id, {"method": method}, request)
        logger.info("MFA verified user_id=%s method=%s", profile_id, method)
