"""Bearer token providers and the durable SQLite credential slot."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class TokenProvider(Protocol):
    """Anything that can hand out the current bearer token."""

    def get_token(self) -> Optional[str]:
        ...


class StaticTokenProvider:
    """Fixed token, for tests and env-supplied credentials."""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    def get_token(self) -> Optional[str]:
        return self.token or None


class CredentialStore:
    """Simple SQLite key-value slot holding the bearer token."""

    def __init__(self, db_path: str = "data/credentials.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create database tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS credentials (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        logger.debug(f"Credential store initialized at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        """Get stored value by key."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute("SELECT value FROM credentials WHERE key = ?", (key,))
            row = cursor.fetchone()

            if not row:
                return None

            return row["value"]

    def set(self, key: str, value: str):
        """Insert or replace a value."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO credentials (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, datetime.utcnow().isoformat()),
            )
            conn.commit()

    def delete(self, key: str):
        """Remove a value if present."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM credentials WHERE key = ?", (key,))
            conn.commit()

    def get_token(self) -> Optional[str]:
        return self.get(TOKEN_KEY) or None

    def set_token(self, token: str):
        """Persist the bearer token after a successful login."""
        if not token:
            raise ValueError("Refusing to store an empty token")
        self.set(TOKEN_KEY, token)
        logger.info("Stored bearer token")

    def clear_token(self):
        """Forget the bearer token (logout)."""
        self.delete(TOKEN_KEY)
        logger.info("Cleared bearer token")
