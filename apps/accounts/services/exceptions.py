"""Domain-specific exceptions for accounts services."""


class AccountsServiceError(Exception):
    """Base exception for accounts services."""

    code = 'accounts_error'


class UserRegistrationError(AccountsServiceError):
    """Raised when user registration fails."""

    code = 'validation_error'


class AuthError(AccountsServiceError):
    """Raised when the caller cannot be authenticated. Re-authenticate, don't retry."""

    code = 'auth_error'


class InvalidCredentialsError(AuthError):
    """Raised when authentication credentials are invalid."""
    pass


class InactiveAccountError(AuthError):
    """Raised when account is deactivated."""
    pass
