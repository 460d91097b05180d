"""
SQLite Database Repository - Snefuru Data Persistence
======================================================

Stores users, image batches, generated images, domain lists and
keyword ranking positions. Domains and positions are scoped per user.
"""

import sqlite3
import logging
from dataclasses import dataclass, asdict, fields
from typing import List, Optional, Iterable
from contextlib import contextmanager

logger = logging.getLogger(__name__)

DATABASE_FILE = "snefuru.db"


@dataclass
class User:
    """Registered dashboard user."""
    id: int
    email: str
    username: str
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: str = ""
    last_login: Optional[str] = None
    profile_image: Optional[str] = None
    is_active: int = 1
    user_role: str = "user"

    def to_public(self) -> dict:
        """User data safe to send to a client (no password hash)."""
        data = asdict(self)
        data.pop("password_hash")
        return data


@dataclass
class ImageBatch:
    """One run of the generation job."""
    id: int
    created_at: str = ""
    note1: Optional[str] = None


@dataclass
class Image:
    """A generated image stored in cloud storage."""
    id: int
    img_url1: str
    rel_img_batch_id: int
    created_at: str = ""


@dataclass
class Domain:
    """A domain in a user's list."""
    id: int
    domain_base: str
    rel_user_id: int
    created_at: str = ""


@dataclass
class OrganicPosition:
    """Keyword ranking record imported from an SEO export."""
    id: int
    user_id: int
    keyword: str
    url: str
    domain: Optional[str] = None
    position: Optional[int] = None
    previous_position: Optional[int] = None
    position_change: Optional[int] = None
    search_volume: Optional[int] = None
    cpc: Optional[str] = None
    competition: Optional[str] = None
    traffic: Optional[int] = None
    traffic_cost: Optional[str] = None
    timestamp: Optional[str] = None
    location: Optional[str] = None
    device: Optional[str] = None
    search_engine: str = "google"
    language: str = "en"
    date_captured: Optional[str] = None
    serp_features: Optional[str] = None
    difficulty: Optional[str] = None
    visibility: Optional[str] = None
    estimated_clicks: Optional[int] = None
    click_through_rate: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    meta_description: Optional[str] = None
    h1_tag: Optional[str] = None
    word_count: Optional[int] = None
    page_authority: Optional[str] = None
    domain_authority: Optional[str] = None
    backlinks: Optional[int] = None
    referring_domains: Optional[int] = None
    social_shares: Optional[int] = None
    raw_page_fetched_1: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


# Columns a caller may set on a position (everything but bookkeeping)
POSITION_COLUMNS = [
    f.name for f in fields(OrganicPosition)
    if f.name not in ("id", "created_at", "updated_at")
]

INTEGER_POSITION_COLUMNS = {
    f.name for f in fields(OrganicPosition)
    if f.type == Optional[int] and f.name != "id"
}

USER_UPDATABLE_COLUMNS = {
    "email", "username", "password_hash", "first_name", "last_name", "profile_image",
}


class Database:
    """
    SQLite database for Snefuru.

    Usage:
        db = Database()
        db.init()

        batch_id = db.create_image_batch("Batch with 2 images")
        db.create_image(img_url1="https://...", rel_img_batch_id=batch_id)
    """

    def __init__(self, db_path: str = DATABASE_FILE):
        self.db_path = str(db_path)

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    username TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    first_name TEXT,
                    last_name TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    last_login TIMESTAMP,
                    profile_image TEXT,
                    is_active INTEGER DEFAULT 1,
                    user_role TEXT DEFAULT 'user'
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS image_batches (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    note1 TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS images (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    img_url1 TEXT NOT NULL,
                    rel_img_batch_id INTEGER NOT NULL REFERENCES image_batches(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS domains (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain_base TEXT NOT NULL,
                    rel_user_id INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(rel_user_id, domain_base)
                )
            """)

            position_columns = ",\n".join(
                f"{name} {'INTEGER' if name in INTEGER_POSITION_COLUMNS else 'TEXT'}"
                for name in POSITION_COLUMNS
                if name not in ("user_id", "keyword", "url")
            )
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS reddit_organic_positions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    keyword TEXT NOT NULL,
                    url TEXT NOT NULL,
                    {position_columns},
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            logger.info(f"Database initialized: {self.db_path}")

    # ── User CRUD ──────────────────────────────────────────────────

    def create_user(self, email: str, username: str, password_hash: str,
                    first_name: Optional[str] = None, last_name: Optional[str] = None) -> Optional[int]:
        """Create a new user. Returns None if email or username is taken."""
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    """INSERT INTO users (email, username, password_hash, first_name, last_name)
                       VALUES (?, ?, ?, ?, ?)""",
                    (email, username, password_hash, first_name, last_name)
                )
                return cursor.lastrowid
        except sqlite3.IntegrityError:
            logger.warning(f"User {email} / {username} already exists")
            return None

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return User(**dict(row)) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return User(**dict(row)) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
            return User(**dict(row)) if row else None

    def update_user(self, user_id: int, **updates) -> Optional[User]:
        """Update user fields and return the fresh record."""
        unknown = set(updates) - USER_UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update user columns: {sorted(unknown)}")

        if updates:
            set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
            with self._get_connection() as conn:
                conn.execute(
                    f"UPDATE users SET {set_clause} WHERE id = ?",
                    list(updates.values()) + [user_id]
                )
        return self.get_user_by_id(user_id)

    def update_last_login(self, user_id: int):
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?", (user_id,)
            )

    # ── Image batches & images ─────────────────────────────────────

    def create_image_batch(self, note: str = "") -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("INSERT INTO image_batches (note1) VALUES (?)", (note,))
            return cursor.lastrowid

    def get_image_batch(self, batch_id: int) -> Optional[ImageBatch]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM image_batches WHERE id = ?", (batch_id,)).fetchone()
            return ImageBatch(**dict(row)) if row else None

    def get_all_image_batches(self) -> List[ImageBatch]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM image_batches ORDER BY id").fetchall()
            return [ImageBatch(**dict(row)) for row in rows]

    def get_recent_image_batches(self, limit: int = 5) -> List[ImageBatch]:
        """Most recent batches first (for the dashboard)."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM image_batches ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [ImageBatch(**dict(row)) for row in rows]

    def create_image(self, img_url1: str, rel_img_batch_id: int) -> Image:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO images (img_url1, rel_img_batch_id) VALUES (?, ?)",
                (img_url1, rel_img_batch_id)
            )
            row = conn.execute("SELECT * FROM images WHERE id = ?", (cursor.lastrowid,)).fetchone()
            return Image(**dict(row))

    def get_images_by_batch_id(self, batch_id: int) -> List[Image]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM images WHERE rel_img_batch_id = ? ORDER BY id", (batch_id,)
            ).fetchall()
            return [Image(**dict(row)) for row in rows]

    # ── Domains ────────────────────────────────────────────────────

    def get_user_domains(self, user_id: int) -> List[Domain]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM domains WHERE rel_user_id = ? ORDER BY id", (user_id,)
            ).fetchall()
            return [Domain(**dict(row)) for row in rows]

    def get_domain(self, domain_id: int) -> Optional[Domain]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM domains WHERE id = ?", (domain_id,)).fetchone()
            return Domain(**dict(row)) if row else None

    def bulk_create_domains(self, user_id: int, domains: Iterable[str]) -> List[Domain]:
        """Insert domains for a user in one transaction."""
        ids = []
        with self._get_connection() as conn:
            for domain in domains:
                cursor = conn.execute(
                    "INSERT INTO domains (domain_base, rel_user_id) VALUES (?, ?)",
                    (domain, user_id)
                )
                ids.append(cursor.lastrowid)
        logger.info(f"Added {len(ids)} domains for user {user_id}")
        return [self.get_domain(domain_id) for domain_id in ids]

    def delete_domain(self, domain_id: int):
        with self._get_connection() as conn:
            conn.execute("DELETE FROM domains WHERE id = ?", (domain_id,))

    def bulk_delete_domains(self, domain_ids: List[int]):
        with self._get_connection() as conn:
            conn.executemany("DELETE FROM domains WHERE id = ?", [(i,) for i in domain_ids])

    # ── Organic positions ──────────────────────────────────────────

    def bulk_create_organic_positions(self, positions: List[dict]) -> int:
        """Insert parsed position dicts. Unknown keys are ignored."""
        count = 0
        with self._get_connection() as conn:
            for position in positions:
                data = {k: v for k, v in position.items() if k in POSITION_COLUMNS}
                columns = ", ".join(data.keys())
                placeholders = ", ".join("?" for _ in data)
                conn.execute(
                    f"INSERT INTO reddit_organic_positions ({columns}) VALUES ({placeholders})",
                    list(data.values())
                )
                count += 1
        logger.info(f"Imported {count} organic positions")
        return count

    def get_organic_positions_by_user_id(self, user_id: int) -> List[OrganicPosition]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM reddit_organic_positions WHERE user_id = ? ORDER BY id",
                (user_id,)
            ).fetchall()
            return [OrganicPosition(**dict(row)) for row in rows]

    def get_organic_position(self, position_id: int) -> Optional[OrganicPosition]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM reddit_organic_positions WHERE id = ?", (position_id,)
            ).fetchone()
            return OrganicPosition(**dict(row)) if row else None

    def update_organic_position(self, position_id: int, **updates):
        unknown = set(updates) - set(POSITION_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update position columns: {sorted(unknown)}")
        if not updates:
            return

        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        with self._get_connection() as conn:
            conn.execute(
                f"UPDATE reddit_organic_positions SET {set_clause}, "
                f"updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                list(updates.values()) + [position_id]
            )

    def delete_organic_positions(self, position_ids: List[int]):
        with self._get_connection() as conn:
            conn.executemany(
                "DELETE FROM reddit_organic_positions WHERE id = ?",
                [(i,) for i in position_ids]
            )


# Quick init helper
def init_database(db_path: str = DATABASE_FILE) -> Database:
    """Create the database file and tables if needed."""
    db = Database(db_path)
    db.init()
    return db
