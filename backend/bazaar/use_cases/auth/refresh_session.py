import logging

from ...auth.identity_provider import (
    IdentityProvider,
    IdentityServiceError,
    InvalidCredentialError,
    ProviderSession,
)
from ...errors import AuthRefreshFailed, AuthServiceUnavailable


logger = logging.getLogger("bazaar.auth")


async def refresh_session(
    identity_provider: IdentityProvider, refresh_token: str
) -> ProviderSession:
    try:
        return await identity_provider.refresh_session(refresh_token)
    except InvalidCredentialError as exc:
        raise AuthRefreshFailed() from exc
    except IdentityServiceError as exc:
        logger.error("Token refresh failed: %s", exc)
        raise AuthServiceUnavailable("Token refresh service error") from exc
