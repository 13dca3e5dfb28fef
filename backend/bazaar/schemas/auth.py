from pydantic import BaseModel, Field, field_validator


class CurrentUser(BaseModel):
    id: str
    email: str
    role: str
    is_admin: bool = Field(..., alias="isAdmin")
    is_super_admin: bool = Field(..., alias="isSuperAdmin")
    permissions: list[str]

    class Config:
        populate_by_name = True


class CurrentUserResponse(BaseModel):
    success: bool = True
    data: CurrentUser


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

    class Config:
        populate_by_name = True


class TokenPair(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    expires_in: int = Field(..., alias="expiresIn")

    class Config:
        populate_by_name = True


class RefreshResponse(BaseModel):
    success: bool = True
    data: TokenPair


class MessageResponse(BaseModel):
    success: bool = True
    message: str


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(..., min_length=8, max_length=256)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(..., min_length=8, max_length=256)
    name: str = Field(..., min_length=2, max_length=255)
    # Free-form so that a disallowed role answers AUTH_INVALID_ROLE, not a 422
    role: str | None = Field(None, max_length=32)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginUser(BaseModel):
    id: str
    email: str
    role: str
    is_admin: bool = Field(..., alias="isAdmin")
    full_name: str | None = Field(None, alias="fullName")

    class Config:
        populate_by_name = True


class LoginData(TokenPair):
    user: LoginUser


class LoginResponse(BaseModel):
    success: bool = True
    data: LoginData


class RegisteredUser(BaseModel):
    user_id: str = Field(..., alias="userId")
    email: str
    role: str

    class Config:
        populate_by_name = True


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    data: RegisteredUser
