import logging

from ...auth.identity_provider import IdentityProvider, IdentityProviderError
from ...auth.principal import AuthenticatedUser


logger = logging.getLogger("bazaar.auth")


async def logout_user(
    identity_provider: IdentityProvider,
    access_token: str | None,
    *,
    user: AuthenticatedUser,
) -> None:
    if not access_token:
        return
    try:
        await identity_provider.sign_out(access_token)
    except IdentityProviderError as exc:
        # The client drops its tokens either way
        logger.error("Provider sign-out failed user_id=%s: %s", user.id, exc)
        return
    if user.is_admin:
        logger.info("Admin user logged out user_id=%s", user.id)
