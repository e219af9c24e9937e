"""
Feed Processing Integration Tests
=================================

Runs the whole batch pipeline (parse, save, filter, crawl, rewrite, sanitize,
store) over a temporary SQLite database. HTTP is served by mocked sessions.
"""

from unittest.mock import Mock

import pytest

from fullfeed.ingestion.feed_parser import FeedParser
from fullfeed.ingestion.scraper import WebScraper
from fullfeed.monitoring.metrics import ScraperMetrics
from fullfeed.processing.processor import EntryProcessor
from fullfeed.database.models import Entry

FEED_URL = "https://blog.example.com/feed.xml"

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Engineering</title>
    <link>https://blog.example.com/</link>
    <item>
      <title>Go 1.2 is out</title>
      <link>https://blog.example.com/go-1-2</link>
      <description>Go teaser</description>
    </item>
    <item>
      <title>Python tips</title>
      <link>https://blog.example.com/python</link>
      <description>Python teaser</description>
    </item>
    <item>
      <title>Golang generics</title>
      <link>https://blog.example.com/golang</link>
      <description>Golang teaser</description>
    </item>
    <item>
      <title>Go modules</title>
      <link>https://blog.example.com/go-modules</link>
      <description>Modules teaser</description>
    </item>
    <item>
      <title>Go tooling</title>
      <link>https://blog.example.com/go-tooling</link>
      <description>Tooling teaser</description>
    </item>
  </channel>
</rss>
"""

PAGES = {
    "https://blog.example.com/go-1-2": (
        200,
        '<html><body><nav>menu</nav><article><p>Full Go 1.2 article</p>'
        '<script>track()</script><a href="/release">notes</a></article></body></html>',
    ),
    "https://blog.example.com/go-modules": (500, "<html>oops</html>"),
    "https://blog.example.com/go-tooling": (200, "<html><body><nav>only nav</nav></body></html>"),
}


def _page_response(url, **kwargs):
    status_code, body = PAGES[url]
    response = Mock()
    response.status_code = status_code
    response.reason = "Server Error" if status_code >= 400 else "OK"
    response.headers = {"Content-Type": "text/html; charset=utf-8"}
    response.encoding = "utf-8"
    response.iter_content.return_value = [body.encode("utf-8")]
    return response


class TestFeedProcessingPipeline:
    """End-to-end batch processing over SQLite."""

    @pytest.fixture
    def feed(self, test_settings, feed_repo, entry_repo):
        feed_session = Mock()
        feed_session.get.return_value = Mock(status_code=200, reason="OK", content=RSS.encode("utf-8"))

        feed = FeedParser(test_settings, session=feed_session).fetch_feed(
            FEED_URL,
            crawler=True,
            keeplist_rules="^Go",
            blocklist_rules="lang",
            scraper_rules="article",
            rewrite_rules='remove("a")',
        )
        feed_repo.save_feed(feed)

        # Already stored by an earlier run
        known = Entry(url="https://blog.example.com/go-1-2", title="Go 1.2 is out", hash="earlier-run")
        known.attach(feed)
        entry_repo.create_entry(known)
        return feed

    @pytest.fixture
    def page_session(self):
        session = Mock()
        session.get.side_effect = _page_response
        return session

    @pytest.fixture
    def metrics(self):
        return ScraperMetrics()

    @pytest.fixture
    def processor(self, test_settings, entry_repo, page_session, metrics):
        return EntryProcessor(
            store=entry_repo,
            scraper=WebScraper(test_settings, session=page_session),
            metrics=metrics,
            settings=test_settings,
        )

    def test_batch_is_filtered_crawled_and_stored(self, processor, feed, entry_repo, page_session, metrics):
        stats = processor.process_feed_entries(feed)

        assert [e.title for e in feed.entries] == ["Go 1.2 is out", "Go modules", "Go tooling"]
        assert stats.received_entries == 5
        assert stats.filtered_out_entries == 2
        assert stats.crawl_skipped_entries == 1
        assert stats.crawled_entries == 2
        assert stats.crawl_failed_entries == 1

        fetched = [c.args[0] for c in page_session.get.call_args_list]
        assert fetched == ["https://blog.example.com/go-modules", "https://blog.example.com/go-tooling"]

        by_url = {e.url: e for e in feed.entries}
        assert by_url["https://blog.example.com/go-1-2"].content == "Go teaser"
        assert by_url["https://blog.example.com/go-modules"].content == "Modules teaser"
        assert by_url["https://blog.example.com/go-tooling"].content == "Tooling teaser"

        assert metrics.summary("success").count == 1
        assert metrics.summary("error").count == 1

        assert entry_repo.create_entries_batch(feed.entries) == 3
        stored = {e.url: e for e in entry_repo.get_entries_for_feed(feed.id)}
        assert "https://blog.example.com/python" not in stored
        assert stored["https://blog.example.com/go-tooling"].content == "Tooling teaser"

    def test_single_entry_refetch_ignores_duplicate_guard(self, processor, feed, entry_repo):
        entry = next(e for e in feed.entries if e.url.endswith("/go-1-2"))

        processor.process_entry_web_page(entry)

        assert entry.content == "<p>Full Go 1.2 article</p>"
        assert entry_repo.entry_url_exists(feed.id, entry.url) is True
