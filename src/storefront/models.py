"""
Storefront data models.

Data classes for users, items and cart lines as returned by the store
database. ``to_dict`` gives the camelCase shape sent to API callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .auth.permissions import Permission


@dataclass
class User:
    """
    User account.

    Attributes:
        id: Unique user identifier (UUID)
        name: Display name
        email: Lower-cased, unique email address
        password: Bcrypt hashed password
        permissions: Ordered permission labels
        reset_token: Pending password reset token (hex), if any
        reset_token_expiry: Epoch seconds after which reset_token is invalid
        created_at: Account creation timestamp
    """
    id: str
    name: str
    email: str
    password: str
    permissions: List[Permission] = field(default_factory=list)
    reset_token: Optional[str] = None
    reset_token_expiry: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        # Never expose the hash or the reset token
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "permissions": [p.value for p in self.permissions],
            "resetTokenExpiry": self.reset_token_expiry,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Item:
    """
    Item for sale.

    Attributes:
        id: Unique item identifier (UUID)
        title: Item title
        description: Item description
        image: Image URL
        large_image: Large image URL
        price: Price in minor currency units (cents)
        user_id: Owning user
        created_at: Creation timestamp
    """
    id: str
    title: str
    description: str
    price: int
    user_id: str
    image: Optional[str] = None
    large_image: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "largeImage": self.large_image,
            "price": self.price,
            "user": {"id": self.user_id},
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class CartItem:
    """
    Cart line: one (user, item) pair with a quantity.

    Attributes:
        id: Unique cart line identifier (UUID)
        quantity: Positive quantity
        user_id: Owning user
        item_id: Item in the cart
    """
    id: str
    user_id: str
    item_id: str
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "quantity": self.quantity,
            "user": {"id": self.user_id},
            "item": {"id": self.item_id},
        }
