from fastapi import APIRouter, Depends, Request, status

from ..auth.authenticator import resolve_role
from ..auth.guards import require_auth
from ..auth.identity_provider import IdentityProvider
from ..auth.principal import AuthenticatedUser
from ..auth.rbac_contract import is_admin_role
from ..dependencies import get_identity_provider
from ..schemas.auth import (
    CurrentUser,
    CurrentUserResponse,
    LoginData,
    LoginRequest,
    LoginResponse,
    LoginUser,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
    TokenPair,
)
from ..use_cases.auth.login_user import login_user
from ..use_cases.auth.logout_user import logout_user
from ..use_cases.auth.refresh_session import refresh_session
from ..use_cases.auth.register_user import register_user

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _client_ip(request: Request) -> str:
    client_host = request.client.host if request.client else None
    return client_host or "unknown-ip"


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> LoginResponse:
    session = await login_user(
        identity_provider, payload.email, payload.password, client_ip=_client_ip(request)
    )
    role = resolve_role(session.user)
    full_name = session.user.user_metadata.get("full_name")
    return LoginResponse(
        data=LoginData(
            user=LoginUser(
                id=session.user.id,
                email=session.user.email,
                role=role.value,
                is_admin=is_admin_role(role),
                full_name=full_name if isinstance(full_name, str) else None,
            ),
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> RegisterResponse:
    user, role = await register_user(
        identity_provider, payload.email, payload.password, payload.name, payload.role
    )
    return RegisterResponse(
        message="Registration successful. Please check your email to verify your account.",
        data=RegisteredUser(user_id=user.id, email=user.email or payload.email, role=role.value),
    )


@router.get("/me", response_model=CurrentUserResponse)
async def me(user: AuthenticatedUser = Depends(require_auth())) -> CurrentUserResponse:
    return CurrentUserResponse(
        data=CurrentUser(
            id=user.id,
            email=user.email,
            role=user.role.value,
            is_admin=user.is_admin,
            is_super_admin=user.is_super_admin,
            permissions=sorted(user.permissions),
        )
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    payload: RefreshRequest,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> RefreshResponse:
    session = await refresh_session(identity_provider, payload.refresh_token)
    return RefreshResponse(
        data=TokenPair(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    user: AuthenticatedUser = Depends(require_auth()),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> MessageResponse:
    await logout_user(identity_provider, request.state.access_token, user=user)
    return MessageResponse(message="Logged out successfully")
