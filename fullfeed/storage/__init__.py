"""
FullFeed Storage Layer
======================

Repository pattern implementations for data access abstraction.

This module provides:
- Entry repository, including the duplicate check used before crawling
- Feed repository for per-feed rules
"""

from .entry_repository import EntryRepository
from .feed_repository import FeedRepository

__all__ = [
    "EntryRepository",
    "FeedRepository",
]
