"""
Authentication module for the storefront.

Provides bcrypt credentials, JWT session cookies and permission guards.
"""

from .credentials import (
    MAX_PASSWORD_BYTES,
    RESET_TOKEN_TTL,
    ResetToken,
    check_password_length,
    hash_password,
    issue_reset_token,
    verify_password,
)
from .jwt_handler import COOKIE_MAX_AGE, COOKIE_NAME, SessionIssuer
from .permissions import (
    DEFAULT_PERMISSIONS,
    MUTATION_PERMISSIONS,
    Permission,
    has_permission,
    parse_permissions,
    require_authenticated,
    require_owner_or_permission,
    require_permission,
)

__all__ = [
    # Credentials
    "MAX_PASSWORD_BYTES",
    "RESET_TOKEN_TTL",
    "ResetToken",
    "check_password_length",
    "hash_password",
    "issue_reset_token",
    "verify_password",
    # Sessions
    "COOKIE_MAX_AGE",
    "COOKIE_NAME",
    "SessionIssuer",
    # Permissions
    "DEFAULT_PERMISSIONS",
    "MUTATION_PERMISSIONS",
    "Permission",
    "has_permission",
    "parse_permissions",
    "require_authenticated",
    "require_owner_or_permission",
    "require_permission",
]
