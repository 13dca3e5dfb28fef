import logging

from ...auth.authenticator import resolve_role
from ...auth.identity_provider import (
    IdentityProvider,
    IdentityServiceError,
    InvalidCredentialError,
    ProviderSession,
)
from ...auth.rbac_contract import is_admin_role
from ...errors import AuthBadCredentials, AuthServiceUnavailable


logger = logging.getLogger("bazaar.auth")


async def login_user(
    identity_provider: IdentityProvider, email: str, password: str, client_ip: str | None = None
) -> ProviderSession:
    try:
        session = await identity_provider.sign_in(email=email, password=password)
    except InvalidCredentialError as exc:
        logger.warning("Login failed email=%s ip=%s", email, client_ip or "unknown-ip")
        raise AuthBadCredentials() from exc
    except IdentityServiceError as exc:
        logger.error("Login failed, identity provider error: %s", exc)
        raise AuthServiceUnavailable() from exc

    role = resolve_role(session.user)
    if is_admin_role(role):
        logger.info(
            "Admin user logged in user_id=%s role=%s ip=%s",
            session.user.id,
            role.value,
            client_ip or "unknown-ip",
        )
    return session
