"""
SQLite database for the storefront.

Thread-safe store for users, items and cart lines. Read-then-write
sequences that must not race (cart increments, reset token consumption)
are expressed as single conditional statements or run inside one
immediate transaction.
"""

import json
import sqlite3
import threading
import uuid
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from .auth.permissions import Permission
from .errors import ValidationError
from .models import CartItem, Item, User


# Item columns a caller may change through update_item
ITEM_UPDATABLE_FIELDS = ("title", "description", "image", "large_image", "price")


class StoreDatabase:
    """
    Thread-safe storefront database.

    Manages users, items and cart items using SQLite.
    All operations are protected by threading.RLock for thread safety.
    """

    def __init__(self, db_path: Path):
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Create tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock, closing(self._connect()) as conn:
            cursor = conn.cursor()

            # Users table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    password TEXT NOT NULL,
                    permissions TEXT NOT NULL DEFAULT '[]',
                    reset_token TEXT,
                    reset_token_expiry REAL,
                    created_at TEXT NOT NULL
                )
            """)

            # Items table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    image TEXT,
                    large_image TEXT,
                    price INTEGER NOT NULL,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)

            # Cart items: at most one row per (user, item)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cart_items (
                    id TEXT PRIMARY KEY,
                    quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity > 0),
                    user_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id),
                    FOREIGN KEY (item_id) REFERENCES items(id)
                )
            """)

            cursor.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_cart_user_item ON cart_items(user_id, item_id)"
            )
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_items_user ON items(user_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_reset ON users(reset_token)")

            conn.commit()

        logger.info(f"Store database initialized: {self.db_path}")

    # ========================================================================
    # Row conversion
    # ========================================================================

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password=row["password"],
            permissions=[Permission(p) for p in json.loads(row["permissions"])],
            reset_token=row["reset_token"],
            reset_token_expiry=row["reset_token_expiry"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            image=row["image"],
            large_image=row["large_image"],
            price=row["price"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_cart_item(row: sqlite3.Row) -> CartItem:
        return CartItem(
            id=row["id"],
            quantity=row["quantity"],
            user_id=row["user_id"],
            item_id=row["item_id"],
        )

    # ========================================================================
    # User Operations
    # ========================================================================

    def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        permissions: List[Permission],
    ) -> User:
        """
        Create new user.

        Args:
            name: Display name
            email: Email address, already normalized by the caller
            password_hash: Bcrypt hash of the password
            permissions: Initial permission set

        Returns:
            Created User object

        Raises:
            ValidationError: If the email is already registered
        """
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password=password_hash,
            permissions=list(permissions),
            created_at=datetime.now(),
        )

        with self._lock, closing(self._connect()) as conn:
            try:
                conn.execute("""
                    INSERT INTO users (id, name, email, password, permissions, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    user.id,
                    user.name,
                    user.email,
                    user.password,
                    json.dumps([p.value for p in user.permissions]),
                    user.created_at.isoformat(),
                ))
                conn.commit()
            except sqlite3.IntegrityError:
                raise ValidationError(f"A user with email {email} already exists") from None

        logger.info(f"User created: {email} ({user.id})")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Get user by ID.

        Returns:
            User object if found, None otherwise
        """
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email.

        Returns:
            User object if found, None otherwise
        """
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()

        return self._row_to_user(row) if row else None

    def list_users(self) -> List[User]:
        """Get all users ordered by email."""
        with self._lock, closing(self._connect()) as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY email").fetchall()

        return [self._row_to_user(row) for row in rows]

    def update_permissions(self, user_id: str, permissions: List[Permission]) -> Optional[User]:
        """
        Overwrite a user's permission set.

        Returns:
            Updated User, or None if the user doesn't exist
        """
        with self._lock, closing(self._connect()) as conn:
            cursor = conn.execute(
                "UPDATE users SET permissions = ? WHERE id = ?",
                (json.dumps([p.value for p in permissions]), user_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None

        logger.info(f"Permissions updated for user {user_id}: {[p.value for p in permissions]}")
        return self.get_user_by_id(user_id)

    def set_reset_token(self, user_id: str, token: str, expiry: float) -> bool:
        """
        Store a reset token and its expiry on a user.

        Returns:
            True if the user exists
        """
        with self._lock, closing(self._connect()) as conn:
            cursor = conn.execute(
                "UPDATE users SET reset_token = ?, reset_token_expiry = ? WHERE id = ?",
                (token, expiry, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def consume_reset_token(self, token: str, password_hash: str, now: float) -> Optional[User]:
        """
        Replace the password of the user holding a live reset token.

        The lookup, the expiry check and the write happen in one immediate
        transaction, and the token fields are cleared in the same statement
        that writes the password, so a token can be used once.

        Args:
            token: Reset token presented by the caller
            password_hash: New bcrypt hash
            now: Current time in epoch seconds

        Returns:
            Updated User, or None if no user holds an unexpired token
        """
        with self._lock, closing(self._connect()) as conn:
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT id FROM users WHERE reset_token = ? AND reset_token_expiry >= ?",
                    (token, now),
                ).fetchone()
                if not row:
                    conn.execute("ROLLBACK")
                    return None

                conn.execute("""
                    UPDATE users
                    SET password = ?, reset_token = NULL, reset_token_expiry = NULL
                    WHERE id = ? AND reset_token = ?
                """, (password_hash, row["id"], token))
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise

        logger.info(f"Password reset for user {row['id']}")
        return self.get_user_by_id(row["id"])

    # ========================================================================
    # Item Operations
    # ========================================================================

    def create_item(
        self,
        user_id: str,
        title: str,
        description: str,
        price: int,
        image: Optional[str] = None,
        large_image: Optional[str] = None,
    ) -> Item:
        """
        Create an item owned by user_id.

        Returns:
            Created Item object
        """
        item = Item(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            price=price,
            user_id=user_id,
            image=image,
            large_image=large_image,
            created_at=datetime.now(),
        )

        with self._lock, closing(self._connect()) as conn:
            conn.execute("""
                INSERT INTO items (id, title, description, image, large_image, price, user_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                item.id,
                item.title,
                item.description,
                item.image,
                item.large_image,
                item.price,
                item.user_id,
                item.created_at.isoformat(),
            ))
            conn.commit()

        logger.info(f"Item created: {title} ({item.id}) by {user_id}")
        return item

    def get_item(self, item_id: str) -> Optional[Item]:
        """
        Get item by ID.

        Returns:
            Item object if found, None otherwise
        """
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()

        return self._row_to_item(row) if row else None

    def list_items(self, skip: int = 0, first: Optional[int] = None) -> List[Item]:
        """
        Get items, newest first.

        Args:
            skip: Number of items to skip
            first: Maximum number of items to return (None for all)
        """
        with self._lock, closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM items ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (-1 if first is None else first, skip),
            ).fetchall()

        return [self._row_to_item(row) for row in rows]

    def update_item(self, item_id: str, updates: Dict[str, Any]) -> Optional[Item]:
        """
        Apply a partial update to an item.

        Args:
            item_id: Item to update
            updates: Column name to new value; keys outside
                ITEM_UPDATABLE_FIELDS are ignored

        Returns:
            Updated Item, or None if the item doesn't exist
        """
        fields = {k: v for k, v in updates.items() if k in ITEM_UPDATABLE_FIELDS}

        with self._lock, closing(self._connect()) as conn:
            if not fields:
                exists = conn.execute("SELECT 1 FROM items WHERE id = ?", (item_id,)).fetchone()
                return self.get_item(item_id) if exists else None

            assignments = ", ".join(f"{column} = ?" for column in fields)
            cursor = conn.execute(
                f"UPDATE items SET {assignments} WHERE id = ?",
                (*fields.values(), item_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None

        logger.info(f"Item updated: {item_id} ({', '.join(fields)})")
        return self.get_item(item_id)

    def delete_item(self, item_id: str) -> bool:
        """
        Delete an item and any cart lines pointing at it.

        Returns:
            True if deletion succeeded
        """
        with self._lock, closing(self._connect()) as conn:
            conn.execute("DELETE FROM cart_items WHERE item_id = ?", (item_id,))
            cursor = conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            conn.commit()
            success = cursor.rowcount > 0

        if success:
            logger.info(f"Item deleted: {item_id}")

        return success

    # ========================================================================
    # Cart Operations
    # ========================================================================

    def upsert_cart_item(self, user_id: str, item_id: str) -> Optional[CartItem]:
        """
        Insert a cart line with quantity 1, or add 1 to the existing line.

        Returns:
            The resulting CartItem, or None if the item doesn't exist
        """
        with self._lock, closing(self._connect()) as conn:
            if not conn.execute("SELECT 1 FROM items WHERE id = ?", (item_id,)).fetchone():
                return None

            conn.execute("""
                INSERT INTO cart_items (id, quantity, user_id, item_id)
                VALUES (?, 1, ?, ?)
                ON CONFLICT (user_id, item_id) DO UPDATE SET quantity = quantity + 1
            """, (str(uuid.uuid4()), user_id, item_id))
            conn.commit()

            row = conn.execute(
                "SELECT * FROM cart_items WHERE user_id = ? AND item_id = ?",
                (user_id, item_id),
            ).fetchone()

        return self._row_to_cart_item(row)

    def get_cart_item(self, cart_item_id: str) -> Optional[CartItem]:
        """
        Get cart line by ID.

        Returns:
            CartItem if found, None otherwise
        """
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM cart_items WHERE id = ?", (cart_item_id,)).fetchone()

        return self._row_to_cart_item(row) if row else None

    def list_cart_items(self, user_id: str) -> List[CartItem]:
        """Get all cart lines for a user."""
        with self._lock, closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM cart_items WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()

        return [self._row_to_cart_item(row) for row in rows]

    def delete_cart_item(self, cart_item_id: str) -> bool:
        """
        Delete a cart line.

        Returns:
            True if deletion succeeded
        """
        with self._lock, closing(self._connect()) as conn:
            cursor = conn.execute("DELETE FROM cart_items WHERE id = ?", (cart_item_id,))
            conn.commit()
            return cursor.rowcount > 0
