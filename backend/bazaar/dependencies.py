from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .auth.authenticator import (
    SqlStaffDirectory,
    StaffDirectory,
    authenticate,
    authenticate_optional,
    extract_bearer_token,
)
from .auth.identity_provider import IdentityProvider, SupabaseIdentityProvider
from .auth.principal import AuthenticatedUser
from .config import settings
from .database import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    return SupabaseIdentityProvider(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
        timeout_seconds=settings.identity_timeout_seconds,
    )


def get_staff_directory(db: AsyncSession = Depends(get_db)) -> StaffDirectory:
    return SqlStaffDirectory(db)


async def get_current_user(
    request: Request,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    staff_directory: StaffDirectory = Depends(get_staff_directory),
) -> AuthenticatedUser:
    token = extract_bearer_token(request.headers.get("authorization"))
    user = await authenticate(token, identity_provider, staff_directory)
    request.state.user = user
    request.state.access_token = token
    return user


async def get_current_user_optional(
    request: Request,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    staff_directory: StaffDirectory = Depends(get_staff_directory),
) -> AuthenticatedUser | None:
    token = extract_bearer_token(request.headers.get("authorization"))
    user = await authenticate_optional(token, identity_provider, staff_directory)
    request.state.user = user
    request.state.access_token = token if user is not None else None
    return user
