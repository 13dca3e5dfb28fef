from .base import Base
from .vendor import Vendor
from .profile import Profile
from .admin_staff import AdminStaff
from .webauthn import WebAuthnChallenge, WebAuthnCredential
from .admin_audit_log import AdminAuditLog
from .order import Order

__all__ = [
    "Base",
    "Vendor",
    "Profile",
    "AdminStaff",
    "WebAuthnCredential",
    "WebAuthnChallenge",
    "AdminAuditLog",
    "Order",
]
