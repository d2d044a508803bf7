"""Error taxonomy for the auth core.

Learn: every failure is raised as a typed error where it is detected and
travels unchanged up to the HTTP boundary (api/errors.py), which is the
only place that turns it into a status code. Each class declares:

- status_code: HTTP status at the boundary
- error_code: stable machine-readable code for clients
- public_message: what the caller is allowed to see

The constructor message is internal detail — it gets logged, never
returned. This keeps store errors and account lookups from leaking.
"""

from typing import Optional


class WalletGateError(Exception):
    """Base class for all errors raised by the auth core."""

    status_code: int = 500
    error_code: str = "server_error"
    public_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        public_message: Optional[str] = None,
        detail: Optional[dict] = None,
    ):
        self.message = message or self.public_message
        if public_message is not None:
            self.public_message = public_message
        self.detail = detail or {}
        super().__init__(self.message)


# ─── 400 ─────────────────────────────────────────────────


class ValidationError(WalletGateError):
    """Malformed request body or field."""

    status_code = 400
    error_code = "validation_error"
    public_message = "Invalid request"

    def __init__(self, message: str, *, field: Optional[str] = None):
        # Validation messages describe caller input, so they are safe to return
        super().__init__(message, public_message=message, detail={"field": field} if field else None)
        self.field = field


# ─── 401 ─────────────────────────────────────────────────


class AuthenticationError(WalletGateError):
    """The caller's identity could not be established."""

    status_code = 401
    error_code = "unauthorized"
    public_message = "Authentication required"


class MissingTokenError(AuthenticationError):
    public_message = "No token provided"


class MalformedTokenError(AuthenticationError):
    public_message = "Invalid token"


class SignatureInvalidError(AuthenticationError):
    public_message = "Invalid token"


class TokenExpiredError(AuthenticationError):
    public_message = "Token has expired"


class TokenRevokedError(AuthenticationError):
    public_message = "Token has been revoked"


class SignatureMismatchError(AuthenticationError):
    """Wallet signature does not recover to the claimed address."""

    public_message = "Invalid signature"


class InvalidCredentialsError(AuthenticationError):
    public_message = "Invalid credentials"


class AccountNotFoundError(AuthenticationError):
    """Token subject has no account.

    Reported like any other bad token: 401, "Invalid token".
    """

    public_message = "Invalid token"


class AccountInactiveError(AuthenticationError):
    public_message = "Account is inactive"


# ─── 403 ─────────────────────────────────────────────────


class AuthorizationError(WalletGateError):
    """Identity is known but not allowed to do this."""

    status_code = 403
    error_code = "forbidden"
    public_message = "Insufficient permissions"


class WalletRequiredError(AuthorizationError):
    public_message = "Wallet authentication required"


class WalletNotVerifiedError(AuthorizationError):
    public_message = "Wallet not verified"


# ─── 404 ─────────────────────────────────────────────────


class NotFoundError(WalletGateError):
    """Admin-addressed resource does not exist."""

    status_code = 404
    error_code = "not_found"
    public_message = "Not found"


# ─── 409 ─────────────────────────────────────────────────


class ConflictError(WalletGateError):
    """Unique-constraint violation that a re-fetch could not resolve."""

    status_code = 409
    error_code = "conflict"
    public_message = "Resource already exists"


# ─── 5xx ─────────────────────────────────────────────────


class ServiceError(WalletGateError):
    status_code = 500
    error_code = "server_error"
    public_message = "Internal server error"


class ConfigurationError(ServiceError):
    """Signing key or algorithm is missing or unusable."""


class ServiceUnavailableError(ServiceError):
    """A backing store timed out or could not be reached."""

    status_code = 503
    error_code = "service_unavailable"
    public_message = "Service temporarily unavailable"
