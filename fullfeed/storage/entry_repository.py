"""
Entry Repository
================

Repository for Entry persistence, including the (feed, URL) existence check
the enrichment pipeline uses to avoid re-crawling known entries.
"""

from datetime import datetime
from typing import List, Optional

from ..database.models import Entry
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class EntryRepository:
    """Repository for Entry CRUD operations with database abstraction."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize entry repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("entry_repository")

    def entry_url_exists(self, feed_id: Optional[int], url: str) -> bool:
        """Check whether an entry with this URL is already stored for the feed.

        Args:
            feed_id: Owning feed ID
            url: Entry URL

        Returns:
            True if a matching entry exists

        Raises:
            DatabaseError: If the lookup fails
        """
        if feed_id is None:
            return False

        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM entries WHERE feed_id = ? AND url = ? LIMIT 1",
                    (feed_id, url)
                ).fetchone()
            return row is not None

        except Exception as e:
            raise DatabaseError(
                f"Failed to check entry existence: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"feed_id": feed_id, "url": url}
            ) from e

    def create_entry(self, entry: Entry) -> int:
        """Insert a single entry.

        Returns:
            Created entry ID

        Raises:
            DatabaseError: If creation fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO entries (feed_id, url, title, content, author, hash,
                                         published_at, fetched_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    self._row_values(entry)
                )
                conn.commit()

            entry.id = cursor.lastrowid
            self.logger.debug(f"Created entry: {entry.id}")
            return entry.id

        except Exception as e:
            raise DatabaseError(
                f"Failed to create entry: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def create_entries_batch(self, entries: List[Entry]) -> int:
        """Insert entries in one transaction, skipping ones already stored.

        Args:
            entries: Entries to create

        Returns:
            Number of entries inserted

        Raises:
            DatabaseError: If batch creation fails
        """
        if not entries:
            return 0

        try:
            created_count = 0
            with self.db.transaction() as conn:
                for entry in entries:
                    cursor = conn.execute(
                        """
                        INSERT OR IGNORE INTO entries
                        (feed_id, url, title, content, author, hash, published_at, fetched_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        self._row_values(entry)
                    )
                    if cursor.rowcount:
                        entry.id = cursor.lastrowid
                        created_count += 1

            self.logger.info(f"Batch created {created_count}/{len(entries)} entries")
            return created_count

        except Exception as e:
            raise DatabaseError(
                f"Failed to batch create entries: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    def get_entry(self, entry_id: int) -> Optional[Entry]:
        """Get entry by ID, or None if not found."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM entries WHERE id = ?",
                    (entry_id,)
                ).fetchone()

            return self._from_row(row) if row else None

        except Exception as e:
            self.logger.error(f"Failed to get entry {entry_id}: {e}")
            return None

    def get_entries_for_feed(self, feed_id: int, limit: int = 100) -> List[Entry]:
        """Get the most recently stored entries of a feed."""
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM entries
                    WHERE feed_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (feed_id, limit)
                ).fetchall()

            return [self._from_row(row) for row in rows]

        except Exception as e:
            self.logger.error(f"Failed to get entries for feed {feed_id}: {e}")
            return []

    def update_entry_content(self, entry: Entry) -> bool:
        """Persist the content of an already stored entry.

        Returns:
            True if a row was updated

        Raises:
            DatabaseError: If the update fails
        """
        if entry.id is None:
            return False

        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE entries SET content = ? WHERE id = ?",
                    (entry.content, entry.id)
                )
                conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            raise DatabaseError(
                f"Failed to update entry {entry.id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    @staticmethod
    def _row_values(entry: Entry) -> tuple:
        return (
            entry.feed_id, entry.url, entry.title, entry.content, entry.author,
            entry.hash, _timestamp(entry.published_at), _timestamp(entry.fetched_at)
        )

    @staticmethod
    def _from_row(row) -> Entry:
        data = dict(row)
        data.pop("created_at", None)
        return Entry(**data)
