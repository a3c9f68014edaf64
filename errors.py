"""
Error taxonomy

Every failure the API reports to a client is an AppError subclass carrying
its HTTP status. Handlers in main.py render them as {"error": message}.
"""

from config import HOME_PAGE, LANDING_PAGE, LOGIN_PAGE


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(AppError):
    status_code = 400
    message = "Invalid input"


class ConflictError(AppError):
    status_code = 409
    message = "Conflict"


class DuplicateEmail(ConflictError):
    message = "User already exists"


class AuthError(AppError):
    status_code = 401
    message = "Not authenticated"


class InvalidCredentials(AuthError):
    message = "Invalid credentials"


class TokenError(AuthError):
    """Token could not be turned into an identity. The subclass is for logs only."""

    kind = "invalid"


class TokenExpired(TokenError):
    kind = "expired"


class TokenMalformed(TokenError):
    kind = "malformed"


class TokenBadSignature(TokenError):
    kind = "bad_signature"


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class InternalError(AppError):
    status_code = 500
    message = "Internal server error"


# Access policy outcomes for page routes; turned into redirects, never bodies.
class RedirectRequired(Exception):
    location = LANDING_PAGE

    def __init__(self, location=None):
        super().__init__(location or self.location)
        self.location = location or self.location


class LoginRequired(RedirectRequired):
    location = LOGIN_PAGE


class AlreadySignedIn(RedirectRequired):
    location = HOME_PAGE
