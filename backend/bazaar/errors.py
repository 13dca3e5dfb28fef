from typing import Any

from fastapi import status


ERROR_LABEL_BY_STATUS: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "Bad Request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not Found",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal Server Error",
    status.HTTP_503_SERVICE_UNAVAILABLE: "Service Unavailable",
}


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
        **extra: Any,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if details is not None:
            self.details = details
        self.extra: dict[str, Any] = extra

        super().__init__(self.message)

    @property
    def label(self) -> str:
        return resolve_error_label(self.status_code)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceUnavailableError(AppError):
    code = "SERVICE_UNAVAILABLE"
    message = "Upstream service unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# ============================================================================
# AUTHENTICATION (401 / 500)
# ============================================================================

class AuthError(AppError):
    code = "AUTH_ERROR"
    message = "Authentication failed"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthMissingCredential(AuthError):
    code = "AUTH_MISSING_TOKEN"
    message = "Missing or invalid authorization header"


class AuthInvalidCredential(AuthError):
    code = "AUTH_INVALID_TOKEN"
    message = "Invalid or expired token"


class AuthBadCredentials(AuthError):
    code = "AUTH_INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AuthServiceUnavailable(AuthError):
    code = "AUTH_SERVICE_ERROR"
    message = "Authentication service unavailable"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AuthRefreshFailed(AuthError):
    code = "AUTH_REFRESH_FAILED"
    message = "Invalid or expired refresh token"


class MfaVerificationFailed(AuthError):
    code = "MFA_VERIFICATION_FAILED"
    message = "MFA verification failed"


class WebhookSignatureInvalid(AuthError):
    code = "INVALID_SIGNATURE"
    message = "Invalid webhook signature"


# ============================================================================
# DOMAIN
# ============================================================================

class StaffCreateFailed(AppError):
    code = "AUTH_CREATE_FAILED"
    message = "Failed to create staff account"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthInvalidRole(AppError):
    code = "AUTH_INVALID_ROLE"
    message = "Invalid role. Only buyer or vendor registration is allowed."
    status_code = status.HTTP_400_BAD_REQUEST


class RegistrationFailed(AppError):
    code = "AUTH_REGISTRATION_FAILED"
    message = "Registration failed"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStatusTransition(ConflictError):
    code = "INVALID_STATUS_TRANSITION"
    message = "Invalid order status transition"


# ============================================================================
# AUTHORIZATION (403)
# ============================================================================

class AuthorizationError(AppError):
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN


class AuthInsufficientRole(AuthorizationError):
    code = "AUTH_INSUFFICIENT_ROLE"
    message = "Insufficient role privileges"


class AuthInsufficientPermission(AuthorizationError):
    code = "AUTH_MISSING_PERMISSION"
    message = "Missing required permissions"


class AuthAdminRequired(AuthorizationError):
    code = "AUTH_ADMIN_REQUIRED"
    message = "Admin access required"


class AuthSuperAdminRequired(AuthorizationError):
    code = "AUTH_SUPER_ADMIN_REQUIRED"
    message = "Super admin access required"


class AuthModuleDenied(AuthorizationError):
    code = "AUTH_MODULE_ACCESS_DENIED"
    message = "Module access denied"


class AuthNotOwner(AuthorizationError):
    code = "AUTH_NOT_OWNER"
    message = "You can only access your own resources"


class AuthVendorRequired(AuthorizationError):
    code = "AUTH_VENDOR_REQUIRED"
    message = "Vendor access required"


class AuthForbiddenEscalation(AuthorizationError):
    code = "AUTH_FORBIDDEN"
    message = "Cannot create super_admin accounts via API"


def resolve_error_label(status_code: int) -> str:
    if status_code in ERROR_LABEL_BY_STATUS:
        return ERROR_LABEL_BY_STATUS[status_code]
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return ERROR_LABEL_BY_STATUS[status.HTTP_500_INTERNAL_SERVER_ERROR]
    return "Error"


def error_payload(
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": resolve_error_label(status_code),
        "message": message,
        "code": code,
    }
    if details is not None:
        payload["details"] = details
    payload.update(extra)
    return payload
