"""
Tests for Entry Filter
======================

Keep-list / block-list behaviour, ordering, and invalid pattern handling.
"""

import pytest

from fullfeed.database.models import Entry, Feed
from fullfeed.processing.entry_filter import EntryFilter
from fullfeed.utils.exceptions import FilterRuleError, ErrorCode


def _feed(titles, keeplist="", blocklist=""):
    return Feed(
        feed_url="https://example.com/feed.xml",
        keeplist_rules=keeplist,
        blocklist_rules=blocklist,
        entries=[Entry(url=f"https://example.com/{i}", title=t) for i, t in enumerate(titles)],
    )


def _titles(feed):
    return [entry.title for entry in feed.entries]


class TestEntryFilter:
    """Test suite for EntryFilter."""

    @pytest.fixture
    def entry_filter(self):
        return EntryFilter(strict_rules=False)

    def test_no_rules_is_identity(self, entry_filter):
        feed = _feed(["Go 1.2", "Python", "Golang"])
        original = list(feed.entries)

        removed = entry_filter.filter_feed_entries(feed)

        assert removed == 0
        assert feed.entries == original
        assert all(a is b for a, b in zip(feed.entries, original))

    def test_keeplist_keeps_matching_titles(self, entry_filter):
        feed = _feed(["Go 1.2", "Python", "Golang"], keeplist="^Go")

        removed = entry_filter.filter_feed_entries(feed)

        assert removed == 1
        assert _titles(feed) == ["Go 1.2", "Golang"]

    def test_keeplist_then_blocklist(self, entry_filter):
        feed = _feed(["Go 1.2", "Python", "Golang"], keeplist="^Go", blocklist="lang")

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["Go 1.2"]

    def test_blocklist_only(self, entry_filter):
        feed = _feed(["Go 1.2", "Python", "Golang"], blocklist="Python")

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["Go 1.2", "Golang"]

    def test_match_is_a_search_not_anchored(self, entry_filter):
        feed = _feed(["Release notes for Go", "Weekly digest"], keeplist="Go")

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["Release notes for Go"]

    def test_whitespace_in_pattern_is_significant(self, entry_filter):
        feed = _feed(["Go 1.2", "Learn Go", "Python"], blocklist=" Go")

        removed = entry_filter.filter_feed_entries(feed)

        assert feed.blocklist_rules == " Go"
        assert removed == 1
        assert _titles(feed) == ["Go 1.2", "Python"]

    def test_order_is_preserved(self, entry_filter):
        titles = ["b-keep", "a-drop", "c-keep", "d-drop", "a-keep"]
        feed = _feed(titles, keeplist="keep")

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["b-keep", "c-keep", "a-keep"]

    def test_empty_title_matches_as_empty_string(self, entry_filter):
        feed = _feed(["", "Go"], blocklist="^$")

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["Go"]

    def test_invalid_pattern_rejected_by_model(self):
        with pytest.raises(ValueError):
            _feed(["Go"], keeplist="(unclosed")

    def test_invalid_keeplist_lenient_keeps_nothing(self, entry_filter):
        feed = _feed(["Go 1.2", "Python"])
        feed.keeplist_rules = "(unclosed"

        removed = entry_filter.filter_feed_entries(feed)

        assert removed == 2
        assert feed.entries == []

    def test_invalid_blocklist_lenient_blocks_nothing(self, entry_filter):
        feed = _feed(["Go 1.2", "Python"])
        feed.blocklist_rules = "[a-"

        entry_filter.filter_feed_entries(feed)

        assert _titles(feed) == ["Go 1.2", "Python"]

    def test_invalid_pattern_strict_raises_before_touching_entries(self):
        feed = _feed(["Go 1.2", "Python"], keeplist="^Go")
        feed.blocklist_rules = "[a-"
        original = list(feed.entries)

        with pytest.raises(FilterRuleError) as exc_info:
            EntryFilter(strict_rules=True).filter_feed_entries(feed)

        assert exc_info.value.error_code == ErrorCode.FILTER_RULE_INVALID
        assert exc_info.value.context["rule_name"] == "blocklist_rules"
        assert feed.entries == original

    def test_strict_rules_read_from_settings(self, test_settings):
        test_settings.filtering.strict_rules = True

        assert EntryFilter(test_settings).strict_rules is True
        assert EntryFilter(test_settings, strict_rules=False).strict_rules is False
