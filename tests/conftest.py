"""Pytest configuration and fixtures."""

from typing import List, Optional

import pytest

from storefront.auth import credentials
from storefront.auth.jwt_handler import SessionIssuer
from storefront.auth.permissions import Permission
from storefront.config import Settings
from storefront.context import RequestContext
from storefront.database import StoreDatabase
from storefront.mutations import Mutations


TEST_SECRET = "test-secret-key"


class FakeMailer:
    """Records outgoing mail instead of talking to an SMTP server."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.sent: List[dict] = []
        self.fail_with = fail_with

    def send_mail(self, from_addr: str, to: str, subject: str, html: str):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"from": from_addr, "to": to, "subject": subject, "html": html})
        return {}


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the minimum bcrypt cost so tests stay fast."""
    monkeypatch.setattr(credentials, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        app_secret=TEST_SECRET,
        frontend_url="http://shop.test",
        database_path=tmp_path / "storefront.db",
        mail_from="shop@shop.test",
    )


@pytest.fixture
def storage(settings) -> StoreDatabase:
    return StoreDatabase(settings.database_path)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def issuer() -> SessionIssuer:
    return SessionIssuer(TEST_SECRET)


@pytest.fixture
def mutations(settings, issuer) -> Mutations:
    return Mutations(settings, issuer)


@pytest.fixture
def make_ctx(storage, mailer):
    """Build a RequestContext for a given caller (None for anonymous)."""

    def _make(caller_id: Optional[str] = None) -> RequestContext:
        return RequestContext(caller_id=caller_id, storage=storage, mailer=mailer)

    return _make


@pytest.fixture
def make_user(storage):
    """Create a user directly in storage with a known password."""

    def _make(
        email: str = "wes@example.com",
        password: str = "dogs123",
        name: str = "Wes",
        permissions: Optional[List[Permission]] = None,
    ):
        return storage.create_user(
            name=name,
            email=email,
            password_hash=credentials.hash_password(password),
            permissions=permissions or [Permission.USER],
        )

    return _make


@pytest.fixture
def make_item(storage):
    def _make(owner_id: str, title: str = "Shoes", price: int = 1000):
        return storage.create_item(
            user_id=owner_id,
            title=title,
            description="Nice shoes",
            price=price,
            image="shoes.jpg",
            large_image="shoes-large.jpg",
        )

    return _make
