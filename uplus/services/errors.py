"""Typed service-layer errors; each carries the HTTP status it maps to."""


class ServiceError(Exception):
    """Base class for errors raised by services and translated at the API boundary."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthenticationError(ServiceError):
    """No usable session: missing, malformed, badly signed, expired or revoked token (401)."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(ServiceError):
    """Valid session but the role or tenant is not allowed here (403)."""

    status_code = 403

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotFoundError(ServiceError):
    """Resource absent or outside the caller's tenant (404)."""

    status_code = 404


class ValidationError(ServiceError):
    """Request passed schema validation but breaks a business rule on its values (400)."""

    status_code = 400


class ConflictError(ServiceError):
    """Operation not allowed in the current state, e.g. deleting the last admin (400)."""

    status_code = 400


class AccountLockedError(ServiceError):
    """Too many failed logins; account temporarily locked (423)."""

    status_code = 423


class SessionNotFoundError(AuthenticationError):
    """No active session row matched (e.g. rotated concurrently by another request)."""

    def __init__(self, message: str = "Invalid or expired session") -> None:
        super().__init__(message)


__all__ = [
    "AccountLockedError",
    "AuthenticationError",
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "ServiceError",
    "SessionNotFoundError",
    "ValidationError",
]
