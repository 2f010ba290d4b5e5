"""
Password hashing and password-reset tokens.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Optional

import bcrypt
from loguru import logger

from ..errors import ValidationError


# Bcrypt cost factor; tests lower it to keep hashing fast
BCRYPT_ROUNDS = 10
RESET_TOKEN_BYTES = 20
MAX_PASSWORD_BYTES = 72  # bcrypt only reads the first 72 bytes
RESET_TOKEN_TTL = 60 * 60  # 1 hour, in seconds


@dataclass
class ResetToken:
    """
    Issued password reset token.

    Attributes:
        token: Random hex string
        expiry: Epoch seconds after which the token is rejected
    """
    token: str
    expiry: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) > self.expiry


def hash_password(password: str) -> str:
    """
    Hash a password with a fresh salt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash as a string
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode('utf-8')


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against a stored hash.

    Returns:
        True if the password matches, False otherwise (including a
        malformed stored hash)
    """
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        return False

    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError as e:
        logger.error(f"Stored password hash is malformed: {e}")
        return False


def issue_reset_token(now: Optional[float] = None) -> ResetToken:
    """Create a reset token valid for RESET_TOKEN_TTL seconds from now."""
    issued_at = time.time() if now is None else now
    return ResetToken(
        token=secrets.token_hex(RESET_TOKEN_BYTES),
        expiry=issued_at + RESET_TOKEN_TTL,
    )


def check_password_length(password: str) -> None:
    """
    Reject passwords bcrypt cannot hash.

    Raises:
        ValidationError: If the password is longer than MAX_PASSWORD_BYTES
            once encoded as UTF-8
    """
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
