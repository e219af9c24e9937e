"""
Entry Filter
============

Keep-list / block-list filtering of a feed's entry batch by title.
"""

import re
from typing import Callable, Optional

from ..database.models import Feed
from ..config.settings import FullFeedSettings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FilterRuleError


TitleMatcher = Callable[[str], bool]


class EntryFilter:
    """Reduces a feed's entries to the ones its filter rules allow."""

    def __init__(self, settings: Optional[FullFeedSettings] = None, strict_rules: Optional[bool] = None):
        """Initialize entry filter.

        Args:
            settings: FullFeed settings (default: global settings)
            strict_rules: Overrides ``settings.filtering.strict_rules``
        """
        if strict_rules is None:
            if settings is None:
                from ..config.settings import get_settings
                settings = get_settings()
            strict_rules = settings.filtering.strict_rules

        self.strict_rules = strict_rules
        self.logger = get_logger_for_component("entry_filter")

    def filter_feed_entries(self, feed: Feed) -> int:
        """Apply the feed's keep-list then block-list to its entries.

        Surviving entries keep their relative order.

        Args:
            feed: Feed whose ``entries`` are replaced by the surviving subset

        Returns:
            Number of entries removed

        Raises:
            FilterRuleError: If a pattern does not compile and strict rules are on
        """
        keep = self._compile(feed, "keeplist_rules", feed.keeplist_rules)
        block = self._compile(feed, "blocklist_rules", feed.blocklist_rules)

        if keep is None and block is None:
            return 0

        before = len(feed.entries)
        entries = feed.entries

        if keep is not None:
            entries = [entry for entry in entries if keep(entry.title or "")]

        if block is not None:
            entries = [entry for entry in entries if not block(entry.title or "")]

        feed.entries = entries
        removed = before - len(entries)

        if removed:
            self.logger.debug(
                f"Filtered {removed}/{before} entries of {feed}",
                extra={'feed_id': feed.id, 'kept': len(entries), 'removed': removed}
            )
        return removed

    def _compile(self, feed: Feed, rule_name: str, pattern: Optional[str]) -> Optional[TitleMatcher]:
        """Compile one rule; None when the rule is not configured."""
        if not pattern:
            return None

        try:
            regex = re.compile(pattern)
        except re.error as e:
            error = FilterRuleError(
                f"Invalid {rule_name} pattern for {feed}: {e}",
                rule_name=rule_name,
                pattern=pattern,
            )
            if self.strict_rules:
                raise error from e

            self.logger.error(str(error), extra={'feed_id': feed.id, 'rule_name': rule_name})
            return lambda title: False

        return lambda title: regex.search(title) is not None
