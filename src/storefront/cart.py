"""
Shopping cart reconciliation.

Keeps at most one cart line per (user, item): adding an item already in the
cart bumps its quantity instead of creating a second line.
"""

from loguru import logger

from .database import StoreDatabase
from .errors import AuthorizationError, NotFoundError
from .models import CartItem


class CartReconciler:
    """Adds and removes cart lines for a user."""

    def __init__(self, storage: StoreDatabase):
        self.storage = storage

    def add_one(self, user_id: str, item_id: str) -> CartItem:
        """
        Add one unit of an item to the user's cart.

        Inserting the line and incrementing an existing one are a single
        storage operation, so concurrent adds never produce duplicate rows.

        Raises:
            NotFoundError: If the item doesn't exist
        """
        cart_item = self.storage.upsert_cart_item(user_id, item_id)
        if cart_item is None:
            raise NotFoundError(f"No item found for id {item_id}")

        logger.debug(f"Cart line {cart_item.id} for user {user_id} now has quantity {cart_item.quantity}")
        return cart_item

    def remove_one(self, user_id: str, cart_item_id: str) -> CartItem:
        """
        Remove a cart line owned by the user.

        Returns:
            The removed CartItem

        Raises:
            NotFoundError: If the cart line doesn't exist
            AuthorizationError: If the cart line belongs to someone else
        """
        cart_item = self.storage.get_cart_item(cart_item_id)
        if cart_item is None:
            raise NotFoundError("No cart item found!")

        # Owner only; no permission overrides this
        if cart_item.user_id != user_id:
            logger.warning(f"User {user_id} tried to remove cart line {cart_item_id} owned by {cart_item.user_id}")
            raise AuthorizationError("You do not own that cart item!")

        self.storage.delete_cart_item(cart_item_id)
        logger.debug(f"Cart line {cart_item_id} removed for user {user_id}")
        return cart_item
