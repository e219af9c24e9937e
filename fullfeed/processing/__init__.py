"""
FullFeed Processing Module
==========================

Enrichment pipeline for feed entries: keep-list / block-list filtering,
original page crawling, rewriting and sanitization.
"""

from .entry_filter import EntryFilter
from .processor import (
    EntryProcessor,
    create_entry_processor,
    process_entry_web_page,
    process_feed_entries,
)

__all__ = [
    'EntryFilter',
    'EntryProcessor',
    'create_entry_processor',
    'process_entry_web_page',
    'process_feed_entries',
]
