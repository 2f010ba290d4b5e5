"""
Unit tests for permission labels and authorization guards.
"""

from unittest.mock import Mock

import pytest

from storefront.auth.permissions import (
    MUTATION_PERMISSIONS,
    Permission,
    has_permission,
    parse_permissions,
    require_authenticated,
    require_owner_or_permission,
    require_permission,
)
from storefront.errors import AuthenticationError, AuthorizationError, ValidationError
from storefront.models import User


def _user(user_id="u1", permissions=(Permission.USER,)):
    return User(id=user_id, name="Test", email="t@example.com", password="x", permissions=list(permissions))


class TestParsePermissions:

    def test_parses_known_names_in_order(self):
        assert parse_permissions(["USER", "ADMIN"]) == [Permission.USER, Permission.ADMIN]

    def test_drops_duplicates(self):
        assert parse_permissions(["USER", "USER"]) == [Permission.USER]

    def test_unknown_name_is_validation_error(self):
        with pytest.raises(ValidationError, match="SUPERUSER"):
            parse_permissions(["USER", "SUPERUSER"])


class TestRequireAuthenticated:

    def test_returns_caller_id(self):
        assert require_authenticated(Mock(caller_id="u1")) == "u1"

    def test_anonymous_caller_is_rejected(self):
        with pytest.raises(AuthenticationError):
            require_authenticated(Mock(caller_id=None))


class TestRequirePermission:

    def test_intersection_passes(self):
        user = _user(permissions=[Permission.USER, Permission.ITEMDELETE])
        require_permission(user, MUTATION_PERMISSIONS["deleteItem"])
        assert has_permission(user, MUTATION_PERMISSIONS["deleteItem"])

    def test_no_intersection_fails(self):
        user = _user(permissions=[Permission.USER, Permission.ITEMCREATE])

        assert not has_permission(user, MUTATION_PERMISSIONS["deleteItem"])
        with pytest.raises(AuthorizationError, match="ITEMDELETE"):
            require_permission(user, MUTATION_PERMISSIONS["deleteItem"])

    def test_empty_permission_set_fails(self):
        with pytest.raises(AuthorizationError):
            require_permission(_user(permissions=[]), {Permission.USER})


class TestRequireOwnerOrPermission:

    def test_owner_passes_without_permissions(self):
        require_owner_or_permission(_user("u1", []), "u1", MUTATION_PERMISSIONS["deleteItem"])

    def test_admin_non_owner_passes(self):
        admin = _user("u2", [Permission.ADMIN])
        require_owner_or_permission(admin, "u1", MUTATION_PERMISSIONS["deleteItem"])

    def test_plain_non_owner_fails(self):
        with pytest.raises(AuthorizationError):
            require_owner_or_permission(_user("u2"), "u1", MUTATION_PERMISSIONS["deleteItem"])

    def test_owner_only_ignores_permissions(self):
        admin = _user("u2", [Permission.ADMIN])
        with pytest.raises(AuthorizationError):
            require_owner_or_permission(admin, "u1", None)
