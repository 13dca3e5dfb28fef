import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Profile(Base):
    """Application profile, keyed by the identity provider's user id."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default="buyer", index=True
    )
    must_change_password: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    mfa_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    mfa_method: Mapped[str | None] = mapped_column(String(16))  # 'totp' | 'webauthn'
    mfa_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vendors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('super_admin', 'admin', 'manager', 'staff', 'viewer', 'vendor', 'buyer')",
            name="valid_profile_role",
        ),
        CheckConstraint(
            "mfa_method IS NULL OR mfa_method IN ('totp', 'webauthn')",
            name="valid_mfa_method",
        ),
    )
