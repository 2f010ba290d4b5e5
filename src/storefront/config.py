"""Configuration management for the storefront."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """
    Process-wide settings, read from the environment and ``.env``.

    Loaded once at startup and injected into everything that needs it.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_secret: str = Field(default="", description="Secret used to sign session tokens")
    frontend_url: str = Field(default="http://localhost:7777", description="Base URL for links in emails")
    database_path: Path = Field(default=Path("data/storefront.db"), description="SQLite database file")

    mail_host: str = Field(default="localhost", description="SMTP host")
    mail_port: int = Field(default=587, description="SMTP port")
    mail_user: Optional[str] = Field(default=None, description="SMTP username")
    mail_pass: Optional[str] = Field(default=None, description="SMTP password")
    mail_from: str = Field(default="storefront@example.com", description="Sender for outgoing mail")

    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=4444, description="Port to bind to")
    log_level: str = Field(default="INFO", description="Log level")

    def require_secret(self) -> str:
        """
        Return the signing secret.

        Raises:
            ConfigurationError: If APP_SECRET is empty
        """
        if not self.app_secret:
            raise ConfigurationError("APP_SECRET must be set")
        return self.app_secret

    def reset_link(self, reset_token: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/reset?resetToken={reset_token}"
