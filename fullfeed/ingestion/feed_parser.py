"""
Feed Parser
===========

Downloads an RSS/Atom document and turns it into a Feed carrying its entry
batch, ready for the enrichment pipeline.
"""

import calendar
import hashlib
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
import requests

from ..database.models import Entry, Feed
from ..config.settings import FullFeedSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedError, ValidationError, ErrorCode
from ..utils.validators import URLValidator


class FeedParser:
    """Synchronous RSS/Atom fetcher built on feedparser."""

    def __init__(
        self,
        settings: Optional[FullFeedSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = settings or get_settings()
        self.timeout = settings.scraper.timeout
        self.user_agent = settings.scraper.default_user_agent
        self.verify_ssl = settings.scraper.verify_ssl
        self.session = session or requests.Session()
        self.logger = get_logger_for_component("feed_parser")

    def fetch_feed(self, feed_url: str, **feed_options) -> Feed:
        """Download and parse a feed.

        Args:
            feed_url: URL of the RSS/Atom document
            **feed_options: Extra Feed fields (crawler, keeplist_rules, ...)

        Returns:
            Feed with its entries attached

        Raises:
            FeedError: If the feed cannot be downloaded or parsed
        """
        try:
            feed_url = URLValidator.validate_page_url(feed_url)
        except ValidationError as e:
            raise FeedError(
                f"Invalid feed URL: {e}",
                url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            ) from e

        self.logger.debug(f"Fetching feed: {feed_url}")

        try:
            response = self.session.get(
                feed_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.Timeout as e:
            raise FeedError(
                f"Request timeout after {self.timeout}s",
                url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise FeedError(f"Fetch error: {e}", url=feed_url) from e

        if response.status_code != 200:
            raise FeedError(
                f"HTTP {response.status_code}: {response.reason}",
                url=feed_url,
                error_code=ErrorCode.FEED_NOT_FOUND if response.status_code == 404 else ErrorCode.FEED_NETWORK_ERROR,
            )

        return self.parse_feed(response.content, feed_url, **feed_options)

    def parse_feed(self, document: Any, feed_url: str, **feed_options) -> Feed:
        """Parse an already downloaded feed document."""
        feed_data = feedparser.parse(document)

        # Malformed feeds are still usable when they yield entries
        if feed_data.bozo and not feed_data.entries:
            raise FeedError(
                f"Feed parse error: {getattr(feed_data, 'bozo_exception', 'invalid XML structure')}",
                url=feed_url,
                error_code=ErrorCode.FEED_PARSE_ERROR,
                recoverable=False,
            )
        if feed_data.bozo:
            self.logger.info(f"Feed has parse warnings but contains entries: {feed_url}")

        channel = feed_data.feed
        feed = Feed(
            feed_url=feed_url,
            site_url=channel.get("link"),
            title=(channel.get("title") or "")[:255] or None,
            **feed_options,
        )
        feed.set_entries(self._parse_entries(feed_data, feed_url))

        self.logger.info(f"Parsed {len(feed.entries)} entries from {feed_url}")
        return feed

    def _parse_entries(self, feed_data: Any, feed_url: str) -> List[Entry]:
        entries = []

        for item in feed_data.entries:
            link = (item.get("link") or "").strip()
            if not link:
                self.logger.warning(f"Entry missing URL in feed {feed_url}, skipping")
                continue

            entries.append(
                Entry(
                    url=link,
                    title=item.get("title", ""),
                    content=self._extract_content(item),
                    author=item.get("author"),
                    hash=self._entry_hash(item, link),
                    published_at=self._parse_date(item),
                )
            )

        return entries

    @staticmethod
    def _entry_hash(item: Any, link: str) -> str:
        """Hash of the entry GUID, falling back to its link."""
        identity = item.get("id") or link
        return hashlib.sha256(identity.encode("utf-8")).hexdigest()

    def _extract_content(self, item: Any) -> str:
        """Atom content, then RSS description, then summary."""
        for field in ("content", "description", "summary"):
            raw_content = item.get(field)

            if isinstance(raw_content, list) and raw_content:
                raw_content = raw_content[0]
            if isinstance(raw_content, dict):
                raw_content = raw_content.get("value", "")

            if raw_content and isinstance(raw_content, str) and raw_content.strip():
                return raw_content

        return ""

    def _parse_date(self, item: Any) -> Optional[datetime]:
        for field in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = item.get(field)
            if date_tuple:
                try:
                    # feedparser normalizes parsed dates to UTC
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError):
                    continue
        return None
