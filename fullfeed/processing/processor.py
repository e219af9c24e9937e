"""
Entry Processor
===============

Enrichment pipeline for a batch of freshly fetched feed entries:

1. Filter the batch with the feed's keep-list and block-list
2. Crawl the original page of each entry when the feed asks for it
3. Rewrite the content with the feed's rules
4. Sanitize the content

The processor only decides when each collaborator runs and how its outcome
changes the entry; scraping, rewriting and sanitizing are injected.
"""

import html
import time
from typing import Optional, Protocol

from ..database.models import Entry, Feed, FetchOutcome, FetchStatus, ProcessingStats
from ..config.settings import FullFeedSettings, get_settings
from ..ingestion.rewriter import ContentRewriter
from ..ingestion.sanitizer import HTMLSanitizer
from ..ingestion.scraper import WebScraper
from ..monitoring.metrics import MetricsObserver, get_scraper_metrics
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import DatabaseError, ProcessingError, ScraperError, ErrorCode, is_retryable_error
from .entry_filter import EntryFilter


class EntryStore(Protocol):
    def entry_url_exists(self, feed_id: Optional[int], url: str) -> bool:
        ...


class Scraper(Protocol):
    def fetch(self, url: str, scraper_rules: str, user_agent: str) -> str:
        ...


class Rewriter(Protocol):
    def rewrite(self, url: str, content: str, rules: str) -> str:
        ...


class Sanitizer(Protocol):
    def sanitize(self, base_url: str, content: str) -> str:
        ...


class EntryProcessor:
    """Runs the filter, crawl, rewrite and sanitize stages over feed entries."""

    def __init__(
        self,
        store: Optional[EntryStore] = None,
        scraper: Optional[Scraper] = None,
        rewriter: Optional[Rewriter] = None,
        sanitizer: Optional[Sanitizer] = None,
        metrics: Optional[MetricsObserver] = None,
        settings: Optional[FullFeedSettings] = None,
        entry_filter: Optional[EntryFilter] = None,
    ):
        """Initialize entry processor.

        Args:
            store: Duplicate check; without one every crawled entry is fetched
            scraper: Page fetcher (default: WebScraper)
            rewriter: Content rewriter (default: ContentRewriter)
            sanitizer: HTML sanitizer (default: HTMLSanitizer)
            metrics: Scraper request observer; nothing is observed when None
            settings: FullFeed settings (default: global settings)
            entry_filter: Keep-list / block-list filter (default: from settings)
        """
        self.settings = settings or get_settings()
        self.store = store
        self.scraper = scraper or WebScraper(self.settings)
        self.rewriter = rewriter or ContentRewriter()
        self.sanitizer = sanitizer or HTMLSanitizer()
        self.metrics = metrics
        self.entry_filter = entry_filter or EntryFilter(self.settings)
        self.logger = get_logger_for_component("processor")

    def filter_feed_entries(self, feed: Feed) -> int:
        """Drop entries rejected by the feed's filter rules; returns how many."""
        return self.entry_filter.filter_feed_entries(feed)

    def process_feed_entries(self, feed: Feed) -> ProcessingStats:
        """Filter, crawl, rewrite and sanitize a feed's entry batch in place.

        A crawl failure is logged and leaves the entry's content as it was;
        the remaining entries are still processed.

        Args:
            feed: Feed carrying the batch in ``entries``

        Returns:
            ProcessingStats for the batch

        Raises:
            FilterRuleError: If a filter pattern is invalid and strict rules are on
        """
        stats = ProcessingStats(received_entries=len(feed.entries))

        with PerformanceLogger(self.logger, "feed entry processing", feed_id=feed.id) as perf:
            stats.filtered_out_entries = self.filter_feed_entries(feed)

            for entry in feed.entries:
                self.logger.debug(
                    f"Processing entry {entry.url}",
                    extra={'feed_id': feed.id, 'entry_url': entry.url, 'crawler': feed.crawler}
                )

                if feed.crawler:
                    if self._entry_is_known(feed, entry):
                        stats.crawl_skipped_entries += 1
                    else:
                        stats.crawled_entries += 1
                        outcome = self._fetch(entry.url, feed.scraper_rules, feed.user_agent)

                        if outcome.error is not None:
                            stats.crawl_failed_entries += 1
                            self.logger.error(
                                f"Unable to crawl this entry: {outcome.error}",
                                extra={
                                    'feed_id': feed.id,
                                    'entry_url': entry.url,
                                    'retryable': is_retryable_error(outcome.error),
                                }
                            )
                        elif outcome.has_content:
                            entry.content = outcome.content

                entry.content = self.transform(entry.url, entry.content, feed.rewrite_rules)

        stats.processing_time_seconds = perf.duration
        self.logger.info(
            f"Processed {stats.kept_entries}/{stats.received_entries} entries of {feed}",
            extra={'feed_id': feed.id, **stats.to_dict()}
        )
        return stats

    def process_entry_web_page(self, entry: Entry) -> None:
        """Re-fetch one entry's page and replace its content.

        There is no crawler gate and no duplicate check. The content is only
        replaced when the transformed result is non-empty.

        Raises:
            ProcessingError: If the entry is not attached to a feed
            ScraperError: If the page cannot be fetched
        """
        feed = entry.feed
        if feed is None:
            raise ProcessingError(
                "Entry is not attached to a feed",
                entry_url=entry.url,
                recoverable=False,
            )

        outcome = self._fetch(entry.url, feed.scraper_rules, feed.user_agent)
        if outcome.error is not None:
            raise outcome.error

        content = self.transform(entry.url, outcome.content, feed.rewrite_rules)
        if content:
            entry.content = content

    def transform(self, url: str, content: Optional[str], rewrite_rules: Optional[str]) -> str:
        """Rewrite, then sanitize. Sanitization always runs last."""
        content = content or ""

        try:
            content = self.rewriter.rewrite(url, content, rewrite_rules or "")
        except Exception as e:
            self.logger.warning(
                f"Rewrite failed, keeping original content: {e}",
                extra={'entry_url': url}
            )

        try:
            return self.sanitizer.sanitize(url, content)
        except Exception as e:
            self.logger.error(
                f"Sanitizer failed, escaping content: {e}",
                extra={'entry_url': url}
            )
            return html.escape(content)

    def _fetch(self, url: str, scraper_rules: str, user_agent: str) -> FetchOutcome:
        start_time = time.monotonic()

        try:
            content = self.scraper.fetch(url, scraper_rules, user_agent)
            outcome = FetchOutcome(
                status=FetchStatus.SUCCESS,
                duration_seconds=time.monotonic() - start_time,
                content=content or "",
            )
        except ScraperError as e:
            outcome = FetchOutcome(
                status=FetchStatus.ERROR,
                duration_seconds=time.monotonic() - start_time,
                error=e,
            )
        except Exception as e:
            error = ScraperError(
                f"Unexpected scraper failure: {e}",
                url=url,
                error_code=ErrorCode.CONTENT_EXTRACTION_FAILED,
            )
            error.__cause__ = e
            outcome = FetchOutcome(
                status=FetchStatus.ERROR,
                duration_seconds=time.monotonic() - start_time,
                error=error,
            )

        self._observe(outcome)
        return outcome

    def _observe(self, outcome: FetchOutcome) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.observe_scraper_request(outcome.status.value, outcome.duration_seconds)
        except Exception as e:
            self.logger.warning(f"Metrics observer failed: {e}")

    def _entry_is_known(self, feed: Feed, entry: Entry) -> bool:
        """Whether storage already has this feed + URL; a storage failure counts as unknown."""
        if self.store is None:
            return False

        try:
            return bool(self.store.entry_url_exists(feed.id, entry.url))
        except DatabaseError as e:
            self.logger.warning(
                f"Duplicate check failed, crawling anyway: {e}",
                extra={'feed_id': feed.id, 'entry_url': entry.url}
            )
            return False


def create_entry_processor(
    settings: Optional[FullFeedSettings] = None,
    store: Optional[EntryStore] = None,
) -> EntryProcessor:
    """Build a processor with the default collaborators.

    The scraper metrics collector is attached only when metrics are enabled.
    """
    settings = settings or get_settings()
    metrics = get_scraper_metrics() if settings.metrics.enabled else None
    return EntryProcessor(store=store, metrics=metrics, settings=settings)


def process_feed_entries(store: EntryStore, feed: Feed) -> ProcessingStats:
    """Quick function to process a feed's entry batch."""
    return create_entry_processor(store=store).process_feed_entries(feed)


def process_entry_web_page(entry: Entry) -> None:
    """Quick function to re-fetch a single entry's page."""
    create_entry_processor().process_entry_web_page(entry)
