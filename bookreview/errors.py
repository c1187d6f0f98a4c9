"""Custom domain exceptions for the application."""

# Stable, machine-readable error codes for API consumers.
NOT_FOUND = "NOT_FOUND"
DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_OR_EXPIRED_TOKEN = "INVALID_OR_EXPIRED_TOKEN"
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
SERVER_ERROR = "SERVER_ERROR"


class DomainError(Exception):
    """Base exception for domain/business logic errors."""

    pass


class NotFoundError(DomainError):
    """Raised when a requested resource does not exist."""

    pass


class DuplicateResourceError(DomainError):
    """Raised when attempting to create or update a resource that would violate a uniqueness constraint."""

    pass


class DomainValidationError(DomainError):
    """Raised when business rules or domain validation fail (e.g. password policy, malformed input)."""

    pass


class InvalidOrExpiredTokenError(DomainValidationError):
    """Raised when a password reset token is unknown, already used, or expired."""

    pass


class UnauthorizedError(DomainError):
    """Raised when a request carries no valid session token."""

    pass


class InvalidCredentialsError(UnauthorizedError):
    """Raised on failed login. Never says whether the email or the password was wrong."""

    pass


class ForbiddenError(DomainError):
    """Raised when an authenticated user acts on a record they do not own."""

    pass
