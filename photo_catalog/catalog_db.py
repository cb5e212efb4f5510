"""
Database interaction with the project photo catalog.
"""

import json
import os
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Tuple, Dict, Any, Optional, Iterable

from .config import AppConfig
from .exceptions import PhotoNotFoundError, NoOriginalToRestoreError
from .logging_setup import get_logger
from .models import (
    Photo, Location, ALL_STATUSES,
    STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED,
)
from .search_index import FTS_TABLE, CREATE_FTS_SQL, upsert_index_entry

logger = get_logger(__name__)

SCHEMA_VERSION = 2

_PHOTOS_SQL = """
    CREATE TABLE IF NOT EXISTS photos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        file_path TEXT UNIQUE NOT NULL,
        taken_at TEXT NOT NULL,
        location TEXT,
        description_ai TEXT,
        description_original TEXT,
        is_edited INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""

# Columns added after the first catalog version. Applied only when missing.
_MIGRATIONS = [
    ("location", "ALTER TABLE photos ADD COLUMN location TEXT"),
    ("description_ai", "ALTER TABLE photos ADD COLUMN description_ai TEXT"),
    ("status", "ALTER TABLE photos ADD COLUMN status TEXT NOT NULL DEFAULT 'pending'"),
    ("description_original", "ALTER TABLE photos ADD COLUMN description_original TEXT"),
    ("is_edited", "ALTER TABLE photos ADD COLUMN is_edited INTEGER NOT NULL DEFAULT 0"),
]

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_photos_status ON photos(status)",
    "CREATE INDEX IF NOT EXISTS idx_photos_created ON photos(created_at)",
]


def _now_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


class CatalogDatabase:
    """Class to handle interactions with a project's catalog database."""

    def __init__(self, catalog_path: str, config: AppConfig):
        """
        Open the catalog, creating or upgrading its schema.

        Args:
            catalog_path: Path to the catalog file
            config: Application configuration

        Raises:
            FileNotFoundError: If the directory holding the catalog doesn't exist
            RuntimeError: If the catalog cannot be opened or upgraded
        """
        catalog_dir = os.path.dirname(os.path.abspath(catalog_path))
        if not os.path.isdir(catalog_dir):
            raise FileNotFoundError(f"Catalog directory not found: {catalog_dir}")

        self.catalog_path = catalog_path
        self.config = config
        self.db_busy_timeout = getattr(config, 'db_busy_timeout', 5000)
        self.max_retries = getattr(config, 'max_retries', 3)

        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        """
        Establish a connection to the SQLite database.
        A new connection is made for each transaction so that the enrichment
        worker and foreground calls never share one.
        """
        try:
            conn = sqlite3.connect(
                self.catalog_path,
                isolation_level=None,
                timeout=self.db_busy_timeout / 1000.0
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(f"PRAGMA busy_timeout={int(self.db_busy_timeout)}")
            return conn
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to catalog: {str(e)}")
            raise RuntimeError(f"Failed to connect to catalog: {str(e)}")

    def _begin(self, immediate: bool) -> sqlite3.Connection:
        """Open a connection and start a transaction, retrying while the database is locked."""
        retry_count = 0
        while True:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN DEFERRED")
                return conn
            except sqlite3.OperationalError as e:
                conn.close()
                if "database is locked" in str(e) and retry_count < self.max_retries:
                    retry_count += 1
                    wait_time = 0.1 * (2 ** retry_count)
                    logger.warning(f"Database locked, retrying in {wait_time:.2f}s (attempt {retry_count}/{self.max_retries})")
                    time.sleep(wait_time)
                else:
                    raise

    def close(self):
        """
        Close the database connection. (No-op here since we open/close per transaction.)
        """
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic close."""
        self.close()

    @contextmanager
    def cursor(self, immediate: bool = False):
        """
        Get a cursor as a context manager wrapping one transaction.
        Commits when the block finishes, rolls back if it raises.

        Args:
            immediate: Take the write lock up front. Every mutating call uses
                this so writes from different threads are serialised.
        """
        conn = self._begin(immediate)
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def _init_db(self) -> None:
        """Create tables, add missing columns and build the search index. Safe on every open."""
        try:
            with self.cursor(immediate=True) as cursor:
                cursor.execute(_PHOTOS_SQL)

                cursor.execute("PRAGMA table_info(photos)")
                existing = {row["name"] for row in cursor.fetchall()}
                for column, sql in _MIGRATIONS:
                    if column not in existing:
                        logger.info(f"Upgrading catalog: adding column '{column}'")
                        cursor.execute(sql)

                for sql in _INDEXES:
                    cursor.execute(sql)

                cursor.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                    (FTS_TABLE,)
                )
                if cursor.fetchone() is None:
                    cursor.execute(CREATE_FTS_SQL)
                    cursor.execute(f"""
                        INSERT INTO {FTS_TABLE} (rowid, description)
                        SELECT id, description_ai FROM photos
                        WHERE description_ai IS NOT NULL AND trim(description_ai) != ''
                    """)
                    if cursor.rowcount > 0:
                        logger.info(f"Search index built for {cursor.rowcount} existing descriptions")

                cursor.execute("PRAGMA user_version")
                version = cursor.fetchone()[0]
                if version < SCHEMA_VERSION:
                    cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                    logger.info(f"Catalog schema upgraded from version {version} to {SCHEMA_VERSION}")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize catalog {self.catalog_path}: {str(e)}")
            raise RuntimeError(f"Failed to initialize catalog: {str(e)}")

    @staticmethod
    def _row_to_photo(row: sqlite3.Row) -> Photo:
        """Convert database row to Photo."""
        location = None
        if row["location"]:
            try:
                location = Location.from_dict(json.loads(row["location"]))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring unreadable location for photo {row['id']}: {str(e)}")

        return Photo(
            id=row["id"],
            file_path=row["file_path"],
            taken_at=row["taken_at"],
            created_at=row["created_at"],
            status=row["status"],
            location=location,
            description_ai=row["description_ai"],
            description_original=row["description_original"],
            is_edited=bool(row["is_edited"]),
        )

    def create_or_get(self, file_path: str, taken_at: str,
                      location: Optional[Location] = None) -> Tuple[int, bool]:
        """
        Insert a photo unless its path is already catalogued.

        Args:
            file_path: Absolute path of the image
            taken_at: Capture time
            location: Optional GPS position

        Returns:
            Tuple of (photo id, whether a new row was created)
        """
        with self.cursor(immediate=True) as cursor:
            cursor.execute("SELECT id FROM photos WHERE file_path = ?", (file_path,))
            row = cursor.fetchone()
            if row:
                return row["id"], False

            cursor.execute("""
                INSERT INTO photos (file_path, taken_at, location, status, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                file_path,
                taken_at,
                json.dumps(location.to_dict()) if location else None,
                STATUS_PENDING,
                _now_timestamp(),
            ))
            return cursor.lastrowid, True

    def get(self, photo_id: int) -> Optional[Photo]:
        """Get a photo by id."""
        with self.cursor() as cursor:
            cursor.execute("SELECT * FROM photos WHERE id = ?", (photo_id,))
            row = cursor.fetchone()
            return self._row_to_photo(row) if row else None

    def get_by_path(self, file_path: str) -> Optional[Photo]:
        """Get a photo by file path."""
        with self.cursor() as cursor:
            cursor.execute("SELECT * FROM photos WHERE file_path = ?", (file_path,))
            row = cursor.fetchone()
            return self._row_to_photo(row) if row else None

    def list_photos(self) -> List[Photo]:
        """List all photos, newest first."""
        with self.cursor() as cursor:
            cursor.execute("SELECT * FROM photos ORDER BY created_at DESC, id DESC")
            return [self._row_to_photo(row) for row in cursor.fetchall()]

    def get_ids_by_status(self, statuses: Iterable[str]) -> List[int]:
        """
        Get ids of photos in any of the given statuses, oldest first.
        """
        statuses = list(statuses)
        if not statuses:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        with self.cursor() as cursor:
            cursor.execute(
                f"SELECT id FROM photos WHERE status IN ({placeholders}) ORDER BY created_at, id",
                statuses
            )
            return [row["id"] for row in cursor.fetchall()]

    def update_status(self, photo_id: int, status: str) -> None:
        """Set the enrichment status of a photo."""
        if status not in ALL_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        with self.cursor(immediate=True) as cursor:
            cursor.execute("UPDATE photos SET status = ? WHERE id = ?", (status, photo_id))
            if cursor.rowcount == 0:
                raise PhotoNotFoundError(photo_id)

    def commit_description(self, photo_id: int, text: str) -> None:
        """
        Store an AI description, mark the photo completed and index the text.

        Raises:
            ValueError: If the text is blank
            PhotoNotFoundError: If the photo doesn't exist
        """
        if not text or not text.strip():
            raise ValueError("Refusing to store an empty description")

        with self.cursor(immediate=True) as cursor:
            cursor.execute(
                "UPDATE photos SET description_ai = ?, status = ? WHERE id = ?",
                (text, STATUS_COMPLETED, photo_id)
            )
            if cursor.rowcount == 0:
                raise PhotoNotFoundError(photo_id)
            upsert_index_entry(cursor, photo_id, text)

    def mark_failed(self, photo_id: int) -> None:
        """Mark a photo as failed."""
        self.update_status(photo_id, STATUS_FAILED)

    def update_description_edit(self, photo_id: int, new_text: str) -> None:
        """
        Replace the description with a user edit.

        The first edit keeps the description it replaces in
        ``description_original``; later edits leave that copy alone.
        """
        with self.cursor(immediate=True) as cursor:
            cursor.execute("SELECT is_edited FROM photos WHERE id = ?", (photo_id,))
            row = cursor.fetchone()
            if row is None:
                raise PhotoNotFoundError(photo_id)

            if row["is_edited"]:
                cursor.execute(
                    "UPDATE photos SET description_ai = ? WHERE id = ?",
                    (new_text, photo_id)
                )
            else:
                cursor.execute("""
                    UPDATE photos
                    SET description_original = description_ai,
                        description_ai = ?,
                        is_edited = 1
                    WHERE id = ?
                """, (new_text, photo_id))
            upsert_index_entry(cursor, photo_id, new_text)

    def restore_original(self, photo_id: int) -> str:
        """
        Put back the description that existed before the first edit.

        Returns:
            The restored description

        Raises:
            PhotoNotFoundError: If the photo doesn't exist
            NoOriginalToRestoreError: If there is no edit to undo
        """
        with self.cursor(immediate=True) as cursor:
            cursor.execute(
                "SELECT is_edited, description_original FROM photos WHERE id = ?",
                (photo_id,)
            )
            row = cursor.fetchone()
            if row is None:
                raise PhotoNotFoundError(photo_id)
            original = row["description_original"]
            if not row["is_edited"] or original is None:
                raise NoOriginalToRestoreError(f"No original description to restore for photo {photo_id}")

            cursor.execute("""
                UPDATE photos
                SET description_ai = description_original,
                    description_original = NULL,
                    is_edited = 0
                WHERE id = ?
            """, (photo_id,))
            upsert_index_entry(cursor, photo_id, original)
            return original

    def reset_interrupted(self) -> int:
        """
        Mark photos left in 'processing' by an interrupted run as failed.

        Returns:
            Number of photos reset
        """
        with self.cursor(immediate=True) as cursor:
            cursor.execute(
                "UPDATE photos SET status = ? WHERE status = ?",
                (STATUS_FAILED, STATUS_PROCESSING)
            )
            count = cursor.rowcount
        if count:
            logger.warning(f"Reset {count} photos interrupted during processing")
        return count

    def get_index_entry(self, photo_id: int) -> Optional[str]:
        """Get the text indexed for a photo, if any."""
        with self.cursor() as cursor:
            cursor.execute(f"SELECT description FROM {FTS_TABLE} WHERE rowid = ?", (photo_id,))
            row = cursor.fetchone()
            return row[0] if row else None

    def get_stats(self) -> Dict[str, Any]:
        """Get catalog statistics."""
        with self.cursor() as cursor:
            stats: Dict[str, Any] = {status: 0 for status in ALL_STATUSES}
            cursor.execute("SELECT status, COUNT(*) FROM photos GROUP BY status")
            for status, count in cursor.fetchall():
                stats[status] = count

            cursor.execute("SELECT COUNT(*) FROM photos")
            stats["total_photos"] = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM photos WHERE is_edited = 1")
            stats["edited_photos"] = cursor.fetchone()[0]

            cursor.execute(f"SELECT COUNT(*) FROM {FTS_TABLE}")
            stats["indexed_photos"] = cursor.fetchone()[0]

            return stats
