"""
Storefront mutations and queries.

Each entry point authorizes the caller, validates its input, delegates to
the store database and, for session changes, tells the HTTP layer what to do
with the session cookie through MutationResult.
"""

import asyncio
import smtplib
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from .auth.credentials import (
    check_password_length,
    hash_password,
    issue_reset_token,
    verify_password,
)
from .auth.jwt_handler import SessionIssuer
from .auth.permissions import (
    DEFAULT_PERMISSIONS,
    MUTATION_PERMISSIONS,
    parse_permissions,
    require_authenticated,
    require_owner_or_permission,
    require_permission,
)
from .cart import CartReconciler
from .config import Settings
from .context import RequestContext
from .errors import AuthenticationError, NotFoundError, ValidationError
from .mailer import make_a_nice_email
from .models import CartItem, Item, User


@dataclass
class MutationResult:
    """
    Value returned by a mutation plus any session cookie change.

    Attributes:
        value: Entity or message to return to the caller
        session_token: Token to set as the session cookie, if any
        clear_session: Whether to remove the session cookie
    """
    value: Any
    session_token: Optional[str] = None
    clear_session: bool = False


async def _run_blocking(func, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


class Mutations:
    """
    Mutation dispatcher.

    Holds the process-wide settings and session issuer; everything
    request-specific arrives through the RequestContext argument.
    """

    def __init__(self, settings: Settings, issuer: SessionIssuer):
        self.settings = settings
        self.issuer = issuer

    async def _current_user(self, ctx: RequestContext) -> User:
        user_id = require_authenticated(ctx)
        user = ctx.storage.get_user_by_id(user_id)
        if user is None:
            # Session outlived its user record
            raise AuthenticationError("You must be logged in to do that!")
        return user

    # ========================================================================
    # Items
    # ========================================================================

    async def create_item(
        self,
        ctx: RequestContext,
        title: str,
        description: str,
        price: int,
        image: Optional[str] = None,
        large_image: Optional[str] = None,
    ) -> Item:
        """
        Create an item owned by the caller.

        Raises:
            AuthenticationError: If the caller is not logged in
            ValidationError: If a required field is empty or price is negative
        """
        user_id = require_authenticated(ctx)

        if not title or not title.strip():
            raise ValidationError("Title is required")
        if not description or not description.strip():
            raise ValidationError("Description is required")
        if price < 0:
            raise ValidationError("Price cannot be negative")

        return ctx.storage.create_item(
            user_id=user_id,
            title=title,
            description=description,
            price=price,
            image=image,
            large_image=large_image,
        )

    async def update_item(self, ctx: RequestContext, id: str, **updates: Any) -> Item:
        """
        Apply a partial update to an item. The id itself is never updated.

        Raises:
            NotFoundError: If no item has this id
            ValidationError: If title or description is set empty, or price
                is set negative
        """
        updates = {k: v for k, v in updates.items() if v is not None and k != "id"}
        for field in ("title", "description"):
            if field in updates and not str(updates[field]).strip():
                raise ValidationError(f"{field.capitalize()} cannot be empty")
        if updates.get("price", 0) < 0:
            raise ValidationError("Price cannot be negative")

        item = ctx.storage.update_item(id, updates)
        if item is None:
            raise NotFoundError(f"No item found for id {id}")
        return item

    async def delete_item(self, ctx: RequestContext, id: str) -> Item:
        """
        Delete an item the caller owns, or any item with ADMIN/ITEMDELETE.

        Raises:
            AuthenticationError: If the caller is not logged in
            NotFoundError: If no item has this id
            AuthorizationError: If the caller neither owns it nor has permission
        """
        user = await self._current_user(ctx)

        item = ctx.storage.get_item(id)
        if item is None:
            raise NotFoundError(f"No item found for id {id}")

        require_owner_or_permission(user, item.user_id, MUTATION_PERMISSIONS["deleteItem"])

        ctx.storage.delete_item(id)
        return item

    # ========================================================================
    # Accounts
    # ========================================================================

    async def signup(self, ctx: RequestContext, email: str, password: str, name: str) -> MutationResult:
        """
        Create an account with the USER permission and log it in.

        Raises:
            ValidationError: If a field is empty, the password is too long
                or the email is taken
        """
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")
        if not name or not name.strip():
            raise ValidationError("Name is required")
        check_password_length(password)

        password_hash = await _run_blocking(hash_password, password)
        user = ctx.storage.create_user(
            name=name,
            email=email,
            password_hash=password_hash,
            permissions=DEFAULT_PERMISSIONS,
        )

        return MutationResult(user, session_token=self.issuer.mint(user.id))

    async def signin(self, ctx: RequestContext, email: str, password: str) -> MutationResult:
        """
        Log a user in.

        Raises:
            AuthenticationError: If the email is unknown or the password is wrong
        """
        email = (email or "").strip().lower()
        user = ctx.storage.get_user_by_email(email)
        if user is None:
            logger.warning(f"Signin failed: user '{email}' not found")
            raise AuthenticationError(f"No such user found for email {email}")

        valid = await _run_blocking(verify_password, password or "", user.password)
        if not valid:
            logger.warning(f"Signin failed: invalid password for '{email}'")
            raise AuthenticationError("Invalid password!")

        logger.info(f"User signed in: {email}")
        return MutationResult(user, session_token=self.issuer.mint(user.id))

    async def signout(self, ctx: RequestContext) -> MutationResult:
        return MutationResult({"message": "Goodbye!"}, clear_session=True)

    async def request_reset(self, ctx: RequestContext, email: str) -> Dict[str, str]:
        """
        Issue a reset token and email the reset link.

        Mail delivery failure is logged; the issued token stays valid.

        Raises:
            NotFoundError: If no user has this email
        """
        email = (email or "").strip().lower()
        user = ctx.storage.get_user_by_email(email)
        if user is None:
            raise NotFoundError(f"No such user found for email {email}")

        reset = issue_reset_token()
        ctx.storage.set_reset_token(user.id, reset.token, reset.expiry)
        logger.info(f"Password reset requested for {email}")

        link = self.settings.reset_link(reset.token)
        html = make_a_nice_email(
            f"Your Password Reset Token is here!\n\n"
            f'<a href="{link}">Click Here to Reset</a>'
        )
        try:
            await _run_blocking(
                ctx.mailer.send_mail,
                self.settings.mail_from,
                user.email,
                "Your Password Reset Token",
                html,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send reset email to {email}: {e}")

        return {"message": "Thanks!"}

    async def reset_password(
        self,
        ctx: RequestContext,
        reset_token: str,
        password: str,
        confirm_password: str,
    ) -> MutationResult:
        """
        Set a new password using a reset token, then log the user in.

        Raises:
            ValidationError: If the passwords don't match or are too long
            AuthenticationError: If the token is unknown or expired
        """
        if password != confirm_password:
            raise ValidationError("Passwords don't match!")
        if not password:
            raise ValidationError("Password is required")
        check_password_length(password)

        password_hash = await _run_blocking(hash_password, password)
        user = ctx.storage.consume_reset_token(reset_token or "", password_hash, now=time.time())
        if user is None:
            logger.warning("Password reset attempted with an invalid or expired token")
            raise AuthenticationError("This token is either invalid or expired!")

        return MutationResult(user, session_token=self.issuer.mint(user.id))

    async def update_permissions(
        self,
        ctx: RequestContext,
        user_id: str,
        permissions: Iterable[str],
    ) -> User:
        """
        Overwrite a user's permission set.

        Raises:
            AuthenticationError: If the caller is not logged in
            AuthorizationError: If the caller lacks ADMIN/PERMISSIONUPDATE
            ValidationError: If a permission name is unknown
            NotFoundError: If the target user doesn't exist
        """
        current = await self._current_user(ctx)
        require_permission(current, MUTATION_PERMISSIONS["updatePermissions"])

        parsed = parse_permissions(permissions)
        user = ctx.storage.update_permissions(user_id, parsed)
        if user is None:
            raise NotFoundError(f"No user found for id {user_id}")
        return user

    # ========================================================================
    # Cart
    # ========================================================================

    async def add_to_cart(self, ctx: RequestContext, id: str) -> CartItem:
        user_id = require_authenticated(ctx)
        return CartReconciler(ctx.storage).add_one(user_id, id)

    async def remove_from_cart(self, ctx: RequestContext, id: str) -> CartItem:
        user_id = require_authenticated(ctx)
        return CartReconciler(ctx.storage).remove_one(user_id, id)

    # ========================================================================
    # Queries
    # ========================================================================

    async def me(self, ctx: RequestContext) -> Optional[User]:
        """Current user, or None for anonymous callers."""
        if not ctx.caller_id:
            return None
        return ctx.storage.get_user_by_id(ctx.caller_id)

    async def items(self, ctx: RequestContext, skip: int = 0, first: Optional[int] = None) -> List[Item]:
        return ctx.storage.list_items(skip=skip, first=first)

    async def item(self, ctx: RequestContext, id: str) -> Item:
        item = ctx.storage.get_item(id)
        if item is None:
            raise NotFoundError(f"No item found for id {id}")
        return item

    async def users(self, ctx: RequestContext) -> List[User]:
        current = await self._current_user(ctx)
        require_permission(current, MUTATION_PERMISSIONS["users"])
        return ctx.storage.list_users()

    async def cart(self, ctx: RequestContext) -> List[CartItem]:
        user_id = require_authenticated(ctx)
        return ctx.storage.list_cart_items(user_id)
