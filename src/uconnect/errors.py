"""Domain errors raised by services and mapped to HTTP responses at the request boundary."""

from __future__ import annotations


class AppError(Exception):
    """Base class for recognised application errors."""

    status_code = 500
    code = "server_error"
    message = "Server error"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Missing or invalid fields"


class InvalidCredentials(AppError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid credentials"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    message = "Authentication required"


class DomainNotAllowed(AppError):
    status_code = 403
    code = "domain_not_allowed"
    message = "Only university email accounts are allowed."


class NotVerified(AppError):
    status_code = 403
    code = "not_verified"
    message = "Please verify your email first."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Not allowed"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class AccountAlreadyExists(AppError):
    status_code = 409
    code = "account_exists"
    message = "User already exists."


class InvalidToken(AppError):
    status_code = 400
    code = "invalid_token"
    message = "Invalid token"


class TokenExpired(InvalidToken):
    code = "token_expired"
    message = "Token expired"


class TokenMismatch(AppError):
    status_code = 400
    code = "token_mismatch"
    message = "Token mismatch"


class ServerError(AppError):
    """Store or other unexpected failure surfaced without internals."""
