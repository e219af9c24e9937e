"""
Tests for Entry Processor
=========================

Covers the crawl gate, duplicate guard, fetch outcomes, transform ordering,
metrics observation and the single-entry re-fetch path.
"""

import logging

import pytest
from unittest.mock import Mock

from fullfeed.database.models import Entry, Feed, FetchStatus
from fullfeed.ingestion.rewriter import ContentRewriter
from fullfeed.ingestion.sanitizer import HTMLSanitizer
from fullfeed.processing.entry_filter import EntryFilter
from fullfeed.processing.processor import EntryProcessor
from fullfeed.utils.exceptions import DatabaseError, ProcessingError, ScraperError, ErrorCode


class InjectingRewriter:
    """Rewriter that appends a script tag so sanitization order is observable."""

    def __init__(self):
        self.calls = []

    def rewrite(self, url, content, rules):
        self.calls.append((url, content, rules))
        return content + "<script>alert(1)</script>"


class TestEntryProcessor:
    """Test suite for EntryProcessor batch processing."""

    @pytest.fixture
    def store(self):
        store = Mock()
        store.entry_url_exists.return_value = False
        return store

    @pytest.fixture
    def scraper(self):
        scraper = Mock()
        scraper.fetch.return_value = "<p>full body</p>"
        return scraper

    @pytest.fixture
    def metrics(self):
        return Mock()

    @pytest.fixture
    def processor(self, store, scraper, metrics, test_settings):
        return EntryProcessor(
            store=store,
            scraper=scraper,
            rewriter=ContentRewriter(predefined_rules={}),
            sanitizer=HTMLSanitizer(),
            metrics=metrics,
            settings=test_settings,
            entry_filter=EntryFilter(strict_rules=False),
        )

    def test_crawler_disabled_never_fetches(self, processor, scraper, sample_feed):
        sample_feed.crawler = False

        stats = processor.process_feed_entries(sample_feed)

        scraper.fetch.assert_not_called()
        assert [e.content for e in sample_feed.entries] == [
            "<p>go summary</p>", "<p>python summary</p>", "<p>golang summary</p>"
        ]
        assert stats.crawled_entries == 0

    def test_crawled_content_replaces_summary(self, processor, scraper, sample_feed):
        sample_feed.user_agent = "TestAgent/1.0"
        sample_feed.scraper_rules = "article"

        stats = processor.process_feed_entries(sample_feed)

        assert scraper.fetch.call_count == 3
        scraper.fetch.assert_any_call("https://example.com/python", "article", "TestAgent/1.0")
        assert all(e.content == "<p>full body</p>" for e in sample_feed.entries)
        assert stats.crawled_entries == 3
        assert stats.crawl_failed_entries == 0

    def test_empty_fetch_keeps_content(self, processor, scraper, sample_feed):
        scraper.fetch.return_value = ""

        processor.process_feed_entries(sample_feed)

        assert sample_feed.entries[0].content == "<p>go summary</p>"

    def test_fetch_error_keeps_content_and_continues(self, processor, scraper, metrics, sample_feed):
        scraper.fetch.side_effect = [
            "<p>first</p>",
            ScraperError("boom", url="https://example.com/python"),
            "<p>third</p>",
        ]

        stats = processor.process_feed_entries(sample_feed)

        assert [e.content for e in sample_feed.entries] == [
            "<p>first</p>", "<p>python summary</p>", "<p>third</p>"
        ]
        assert stats.crawl_failed_entries == 1
        statuses = [c.args[0] for c in metrics.observe_scraper_request.call_args_list]
        assert statuses == ["success", "error", "success"]

    def test_unexpected_scraper_exception_is_contained(self, processor, scraper, sample_feed):
        scraper.fetch.side_effect = RuntimeError("parser exploded")

        stats = processor.process_feed_entries(sample_feed)

        assert stats.crawl_failed_entries == 3
        assert sample_feed.entries[0].content == "<p>go summary</p>"

    def test_known_entry_is_not_fetched(self, processor, store, scraper, sample_feed):
        store.entry_url_exists.side_effect = lambda feed_id, url: url.endswith("/python")

        stats = processor.process_feed_entries(sample_feed)

        assert scraper.fetch.call_count == 2
        fetched = [c.args[0] for c in scraper.fetch.call_args_list]
        assert "https://example.com/python" not in fetched
        assert stats.crawl_skipped_entries == 1
        store.entry_url_exists.assert_any_call(1, "https://example.com/python")

    def test_duplicate_check_failure_fetches_anyway(self, processor, store, scraper, sample_feed):
        store.entry_url_exists.side_effect = DatabaseError("locked")

        processor.process_feed_entries(sample_feed)

        assert scraper.fetch.call_count == 3

    def test_filter_runs_before_crawl(self, processor, scraper, sample_feed):
        sample_feed.keeplist_rules = "^Go"
        sample_feed.blocklist_rules = "lang"

        stats = processor.process_feed_entries(sample_feed)

        assert [e.title for e in sample_feed.entries] == ["Go 1.2"]
        scraper.fetch.assert_called_once()
        assert stats.received_entries == 3
        assert stats.filtered_out_entries == 2
        assert stats.kept_entries == 1

    def test_rewrite_runs_before_sanitize(self, store, scraper, test_settings, sample_feed):
        rewriter = InjectingRewriter()
        processor = EntryProcessor(
            store=store,
            scraper=scraper,
            rewriter=rewriter,
            sanitizer=HTMLSanitizer(),
            settings=test_settings,
        )
        sample_feed.rewrite_rules = "custom"

        processor.process_feed_entries(sample_feed)

        assert rewriter.calls[0] == ("https://example.com/go-1-2", "<p>full body</p>", "custom")
        for entry in sample_feed.entries:
            assert "<script" not in entry.content
            assert "full body" in entry.content

    def test_transform_applies_to_uncrawled_entries(self, processor, sample_feed):
        sample_feed.crawler = False
        sample_feed.entries[0].content = '<p onclick="x()">hi</p><script>bad()</script>'

        processor.process_feed_entries(sample_feed)

        assert sample_feed.entries[0].content == "<p>hi</p>"

    def test_no_metrics_observer(self, store, scraper, test_settings, sample_feed):
        scraper.fetch.side_effect = [
            "<p>first</p>",
            ScraperError("boom", url="https://example.com/python"),
            "<p>third</p>",
        ]
        processor = EntryProcessor(
            store=store,
            scraper=scraper,
            rewriter=ContentRewriter(predefined_rules={}),
            settings=test_settings,
        )

        stats = processor.process_feed_entries(sample_feed)

        assert processor.metrics is None
        assert stats.crawled_entries == 3
        assert stats.crawl_failed_entries == 1
        assert [e.content for e in sample_feed.entries] == [
            "<p>first</p>", "<p>python summary</p>", "<p>third</p>"
        ]

    @pytest.mark.parametrize("error_code, retryable", [
        (ErrorCode.FEED_FETCH_TIMEOUT, True),
        (ErrorCode.FEED_NOT_FOUND, False),
    ])
    def test_crawl_failure_log_marks_retryable(self, processor, scraper, sample_feed, caplog, error_code, retryable):
        scraper.fetch.side_effect = ScraperError("failed", error_code=error_code)

        with caplog.at_level(logging.ERROR, logger="fullfeed.processor"):
            processor.process_feed_entries(sample_feed)

        failures = [r for r in caplog.records if r.getMessage().startswith("Unable to crawl")]
        assert len(failures) == 3
        assert all(record.retryable is retryable for record in failures)

    def test_failing_metrics_observer_does_not_abort(self, processor, metrics, sample_feed):
        metrics.observe_scraper_request.side_effect = RuntimeError("collector down")

        stats = processor.process_feed_entries(sample_feed)

        assert stats.crawled_entries == 3
        assert sample_feed.entries[0].content == "<p>full body</p>"

    def test_metrics_observed_with_duration(self, processor, metrics, sample_feed):
        processor.process_feed_entries(sample_feed)

        assert metrics.observe_scraper_request.call_count == 3
        status, duration = metrics.observe_scraper_request.call_args.args
        assert status == FetchStatus.SUCCESS.value
        assert duration >= 0


class TestTransform:
    """Test suite for the rewrite + sanitize stage."""

    @pytest.fixture
    def processor(self, test_settings):
        return EntryProcessor(scraper=Mock(), settings=test_settings)

    def test_rewriter_failure_passes_content_to_sanitizer(self, test_settings):
        rewriter = Mock()
        rewriter.rewrite.side_effect = RuntimeError("bad rule")
        processor = EntryProcessor(scraper=Mock(), rewriter=rewriter, settings=test_settings)

        result = processor.transform("https://example.com/a", "<p>x</p><script>1</script>", "")

        assert result == "<p>x</p>"

    def test_sanitizer_failure_escapes_content(self, test_settings):
        sanitizer = Mock()
        sanitizer.sanitize.side_effect = RuntimeError("broken")
        processor = EntryProcessor(
            scraper=Mock(),
            rewriter=ContentRewriter(predefined_rules={}),
            sanitizer=sanitizer,
            settings=test_settings,
        )

        result = processor.transform("https://example.com/a", "<b>x</b>", "")

        assert result == "&lt;b&gt;x&lt;/b&gt;"

    def test_empty_content(self, processor):
        assert processor.transform("https://example.com/a", None, None) == ""


class TestProcessEntryWebPage:
    """Test suite for the single-entry re-fetch path."""

    @pytest.fixture
    def scraper(self):
        scraper = Mock()
        scraper.fetch.return_value = "<p>fresh</p>"
        return scraper

    @pytest.fixture
    def store(self):
        store = Mock()
        store.entry_url_exists.return_value = True
        return store

    @pytest.fixture
    def processor(self, store, scraper, test_settings):
        return EntryProcessor(store=store, scraper=scraper, metrics=Mock(), settings=test_settings)

    def test_fetches_without_crawler_or_duplicate_check(self, processor, store, scraper, sample_feed):
        sample_feed.crawler = False
        entry = sample_feed.entries[0]

        processor.process_entry_web_page(entry)

        store.entry_url_exists.assert_not_called()
        scraper.fetch.assert_called_once_with(entry.url, "", "")
        assert entry.content == "<p>fresh</p>"

    def test_fetch_error_is_raised(self, processor, scraper, sample_feed):
        entry = sample_feed.entries[0]
        scraper.fetch.side_effect = ScraperError(
            "timeout", url=entry.url, error_code=ErrorCode.FEED_FETCH_TIMEOUT
        )

        with pytest.raises(ScraperError) as exc_info:
            processor.process_entry_web_page(entry)

        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT
        assert entry.content == "<p>go summary</p>"
        processor.metrics.observe_scraper_request.assert_called_once()
        assert processor.metrics.observe_scraper_request.call_args.args[0] == "error"

    def test_empty_result_keeps_content(self, processor, scraper, sample_feed):
        scraper.fetch.return_value = "<script>only()</script>"
        entry = sample_feed.entries[0]

        processor.process_entry_web_page(entry)

        assert entry.content == "<p>go summary</p>"

    def test_entry_without_feed(self, processor):
        with pytest.raises(ProcessingError):
            processor.process_entry_web_page(Entry(url="https://example.com/orphan"))
