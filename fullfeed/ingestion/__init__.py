"""
FullFeed Ingestion Module
=========================

Default collaborators of the enrichment pipeline.

This module handles:
- Fetching original web pages and extracting article content
- Rule-driven content rewriting
- HTML sanitization
- RSS/Atom parsing into feed entry batches
"""

from .feed_parser import FeedParser
from .rewriter import ContentRewriter
from .sanitizer import HTMLSanitizer
from .scraper import WebScraper

__all__ = [
    "ContentRewriter",
    "FeedParser",
    "HTMLSanitizer",
    "WebScraper",
]
