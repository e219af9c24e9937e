"""
Feed Repository
===============

Persistence for feeds and their per-feed processing rules.
"""

from typing import Optional

from ..database.models import Feed
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

_FEED_COLUMNS = (
    "feed_url", "site_url", "title", "crawler", "user_agent",
    "scraper_rules", "rewrite_rules", "keeplist_rules", "blocklist_rules",
)


class FeedRepository:
    """Repository for Feed rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def save_feed(self, feed: Feed) -> int:
        """Insert the feed, or update its rules when the URL is already known.

        The feed's ID is set and propagated to its entries.

        Raises:
            DatabaseError: If the write fails
        """
        values = tuple(getattr(feed, column) for column in _FEED_COLUMNS)
        updates = ", ".join(f"{column} = excluded.{column}" for column in _FEED_COLUMNS[1:])

        try:
            with self.db.transaction() as conn:
                conn.execute(
                    f"""
                    INSERT INTO feeds ({", ".join(_FEED_COLUMNS)})
                    VALUES ({", ".join("?" * len(_FEED_COLUMNS))})
                    ON CONFLICT(feed_url) DO UPDATE SET {updates}
                    """,
                    values
                )
                row = conn.execute(
                    "SELECT id FROM feeds WHERE feed_url = ?", (feed.feed_url,)
                ).fetchone()

        except Exception as e:
            raise DatabaseError(
                f"Failed to save feed {feed.feed_url}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        feed.id = row["id"]
        for entry in feed.entries:
            entry.attach(feed)

        self.logger.debug(f"Saved feed #{feed.id}: {feed.feed_url}")
        return feed.id

    def get_feed(self, feed_id: int) -> Optional[Feed]:
        """Get a feed (without entries) by ID."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,)).fetchone()
        except Exception as e:
            self.logger.error(f"Failed to get feed {feed_id}: {e}")
            return None

        if not row:
            return None

        data = dict(row)
        data.pop("created_at", None)
        data["crawler"] = bool(data.get("crawler"))
        return Feed(**data)
