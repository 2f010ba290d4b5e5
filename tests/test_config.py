"""
Tests for settings loading.
"""

import pytest

from storefront.config import Settings
from storefront.errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run with an empty working directory and no storefront variables set."""
    for name in ("APP_SECRET", "FRONTEND_URL", "MAIL_FROM", "PORT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_reads_dotenv_file(clean_env):
    """Settings pick up .env without any separate loader."""
    (clean_env / ".env").write_text("APP_SECRET=from-dotenv\nPORT=5555\n")

    settings = Settings()

    assert settings.require_secret() == "from-dotenv"
    assert settings.port == 5555


def test_environment_overrides_dotenv(clean_env, monkeypatch):
    (clean_env / ".env").write_text("APP_SECRET=from-dotenv\n")
    monkeypatch.setenv("APP_SECRET", "from-env")

    assert Settings().app_secret == "from-env"


def test_missing_secret(clean_env):
    with pytest.raises(ConfigurationError):
        Settings().require_secret()


def test_reset_link(clean_env):
    settings = Settings(frontend_url="http://shop.test/")
    assert settings.reset_link("abc123") == "http://shop.test/reset?resetToken=abc123"
