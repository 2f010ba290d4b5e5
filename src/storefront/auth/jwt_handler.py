"""
Session token generation and validation.

Session tokens are JWTs carrying the user id, delivered to the browser as an
HTTP-only cookie. Nothing is persisted server-side.
"""

from datetime import datetime, timezone
from typing import Optional

import jwt
from aiohttp import web
from loguru import logger

from ..errors import ConfigurationError


ALGORITHM = "HS256"
COOKIE_NAME = "token"
COOKIE_MAX_AGE = 60 * 60 * 24 * 365  # 1 year cookie, in seconds


class SessionIssuer:
    """
    Session token handler.

    Mints and decodes signed session tokens and sets or clears the session
    cookie on a response.
    """

    def __init__(self, secret_key: Optional[str], algorithm: str = ALGORITHM):
        """
        Initialize issuer.

        Args:
            secret_key: Process-wide secret for signing tokens
            algorithm: JWT algorithm (default: HS256)

        Raises:
            ConfigurationError: If the secret is missing
        """
        if not secret_key:
            raise ConfigurationError("APP_SECRET is not set; cannot sign session tokens")

        self.secret_key = secret_key
        self.algorithm = algorithm

    def mint(self, user_id: str) -> str:
        """
        Create a session token for a user.

        Args:
            user_id: User UUID

        Returns:
            JWT token string
        """
        payload = {
            "userId": user_id,
            "iat": int(datetime.now(timezone.utc).timestamp()),
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Session token minted for user {user_id}")

        return token

    def decode(self, token: Optional[str]) -> Optional[str]:
        """
        Verify a session token and recover the user id.

        Args:
            token: JWT token string (may be None when no cookie was sent)

        Returns:
            User id if valid, None if missing or invalid
        """
        if not token:
            return None

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("Session token has no userId claim")
            return None

        return user_id

    def attach(self, token: str, response: web.StreamResponse) -> None:
        """Set the session cookie on a response."""
        response.set_cookie(
            COOKIE_NAME,
            token,
            httponly=True,
            max_age=COOKIE_MAX_AGE,
        )

    def clear(self, response: web.StreamResponse) -> None:
        """Remove the session cookie."""
        response.del_cookie(COOKIE_NAME)
