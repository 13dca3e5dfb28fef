import logging

from ...auth.identity_provider import (
    IdentityProvider,
    IdentityServiceError,
    ProviderRejectedError,
    ProviderUser,
)
from ...auth.rbac_contract import SELF_REGISTRATION_ROLES, Role, parse_role
from ...errors import AuthInvalidRole, AuthServiceUnavailable, RegistrationFailed


logger = logging.getLogger("bazaar.auth")


def resolve_registration_role(value: str | None) -> Role:
    """Only marketplace roles may be self-assigned; anything else is refused."""
    if value is None:
        return Role.BUYER
    role = parse_role(value)
    if role is None or role not in SELF_REGISTRATION_ROLES:
        raise AuthInvalidRole()
    return role


async def register_user(
    identity_provider: IdentityProvider,
    email: str,
    password: str,
    name: str,
    role: str | None = None,
) -> tuple[ProviderUser, Role]:
    # Checked before the provider sees the request, so no account is created
    registration_role = resolve_registration_role(role)
    try:
        user = await identity_provider.sign_up(
            email=email,
            password=password,
            user_metadata={"full_name": name, "role": registration_role.value},
        )
    except ProviderRejectedError as exc:
        logger.warning("Registration rejected email=%s: %s", email, exc.message)
        raise RegistrationFailed(exc.message) from exc
    except IdentityServiceError as exc:
        logger.error("Registration failed, identity provider error: %s", exc)
        raise AuthServiceUnavailable("Registration service error") from exc

    logger.info("New user registered user_id=%s role=%s", user.id, registration_role.value)
    return user, registration_role
