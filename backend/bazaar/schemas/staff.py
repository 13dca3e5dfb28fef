import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..auth.rbac_contract import ALL_PERMISSIONS


def _check_permissions(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    unknown = sorted(set(value) - ALL_PERMISSIONS)
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    # Keep caller order, drop duplicates
    return list(dict.fromkeys(value))


class StaffCreateRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=320)
    password: str = Field(..., min_length=12, max_length=256)
    full_name: str = Field(..., alias="fullName", min_length=2, max_length=255)
    role: str = Field(..., min_length=1, max_length=32)
    permissions: list[str] | None = None

    class Config:
        populate_by_name = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, value: list[str] | None) -> list[str] | None:
        return _check_permissions(value)


class StaffUpdateRequest(BaseModel):
    role: str | None = Field(None, min_length=1, max_length=32)
    permissions: list[str] | None = None
    is_active: bool | None = Field(None, alias="isActive")

    class Config:
        populate_by_name = True

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, value: list[str] | None) -> list[str] | None:
        return _check_permissions(value)


class StaffCreated(BaseModel):
    staff_id: str = Field(..., alias="staffId")
    email: str
    role: str
    permissions: list[str]

    class Config:
        populate_by_name = True


class StaffCreateResponse(BaseModel):
    success: bool = True
    message: str
    data: StaffCreated


class StaffResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID = Field(..., alias="profileId")
    role: str
    permissions: list[str] | None = None
    is_active: bool = Field(..., alias="isActive")
    created_by: uuid.UUID | None = Field(None, alias="createdBy")
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class StaffListResponse(BaseModel):
    success: bool = True
    data: list[StaffResponse]
