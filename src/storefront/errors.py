"""
Error taxonomy for the storefront.

Every error raised by a mutation derives from StorefrontError and carries the
HTTP status it maps to, so the API layer can turn it into a response without
knowing which mutation raised it.
"""


class StorefrontError(Exception):
    """
    Base error surfaced to callers.

    Attributes:
        message: Human-readable message returned to the caller
        status: HTTP status code for the API layer
        code: Stable error name returned alongside the message
    """

    status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def code(self) -> str:
        return type(self).__name__


class AuthenticationError(StorefrontError):
    """Caller is not logged in, or presented bad credentials."""

    status = 401


class AuthorizationError(StorefrontError):
    """Caller is logged in but lacks ownership or permissions."""

    status = 403


class ValidationError(StorefrontError):
    """Malformed input (password mismatch, duplicate email, bad fields)."""

    status = 400


class NotFoundError(StorefrontError):
    """Referenced entity does not exist."""

    status = 404


class ConfigurationError(Exception):
    """Fatal misconfiguration detected at startup (e.g. missing APP_SECRET)."""
