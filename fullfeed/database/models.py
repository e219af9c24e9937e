"""
FullFeed Data Models
====================

Pydantic data models for feeds and entries, plus the transient dataclasses
used while a batch is being processed. The models correspond to the database
schema and provide validation, serialization, and type hints.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass
import hashlib

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from ..utils.validators import validate_regex


class Entry(BaseModel):
    """Feed entry (one article of a feed)."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    feed_id: Optional[int] = Field(default=None, description="Owning feed ID")
    url: str = Field(..., min_length=1, description="Entry URL")
    title: str = Field(default="", description="Entry title")
    content: str = Field(default="", description="Entry body, replaced by enrichment")
    author: Optional[str] = Field(default=None, description="Entry author")
    hash: str = Field(default="", description="Stable identity hash")
    published_at: Optional[datetime] = Field(default=None, description="Publication date")
    fetched_at: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Non-owning back-reference, kept out of dumps, repr and equality
    _feed: Optional["Feed"] = PrivateAttr(default=None)

    def __init__(self, **data):
        """Initialize entry with an auto-generated hash."""
        if not data.get('hash'):
            data['hash'] = hashlib.sha256(str(data.get('url', '')).encode('utf-8')).hexdigest()
        super().__init__(**data)

    @field_validator('title', 'content', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        """Feeds often omit title or body."""
        return "" if v is None else v

    @field_validator('url')
    @classmethod
    def strip_url(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Entry URL cannot be empty")
        return v

    @property
    def feed(self) -> Optional["Feed"]:
        """Feed this entry belongs to."""
        return self._feed

    def attach(self, feed: "Feed") -> None:
        """Set the back-reference to the owning feed."""
        self._feed = feed
        if feed.id is not None:
            self.feed_id = feed.id

    def __eq__(self, other: Any) -> bool:
        # Field values only; the feed back-reference would recurse
        if not isinstance(other, Entry):
            return NotImplemented
        return self.__dict__ == other.__dict__

    __hash__ = None

    def __str__(self) -> str:
        return f"Entry({self.title[:50]}:{self.url})"


class Feed(BaseModel):
    """Subscribed feed with its crawl, rewrite and filter configuration."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    feed_url: str = Field(..., min_length=1, description="Feed URL")
    site_url: Optional[str] = Field(default=None, description="Website URL")
    title: Optional[str] = Field(default=None, max_length=255, description="Feed title")
    crawler: bool = Field(default=False, description="Fetch the original page of each entry")
    user_agent: str = Field(default="", description="User agent used when crawling")
    scraper_rules: str = Field(default="", description="CSS selectors for content extraction")
    rewrite_rules: str = Field(default="", description="Content rewrite rules")
    keeplist_rules: str = Field(default="", description="Regex; only matching titles are kept")
    blocklist_rules: str = Field(default="", description="Regex; matching titles are dropped")
    entries: List[Entry] = Field(default_factory=list, description="Entries of the current batch")

    @field_validator('user_agent', 'scraper_rules', 'rewrite_rules', 'keeplist_rules', 'blocklist_rules', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return "" if v is None else v

    @field_validator('keeplist_rules', 'blocklist_rules')
    @classmethod
    def validate_filter_pattern(cls, v):
        """Reject patterns that do not compile. Whitespace is part of the pattern."""
        return validate_regex(v)

    def model_post_init(self, __context: Any) -> None:
        for entry in self.entries:
            entry.attach(self)

    def set_entries(self, entries: List[Entry]) -> None:
        """Replace the entry batch, attaching each entry to this feed."""
        self.entries = list(entries)
        for entry in self.entries:
            entry.attach(self)

    @property
    def has_filter_rules(self) -> bool:
        return bool(self.keeplist_rules or self.blocklist_rules)

    def __str__(self) -> str:
        return f"Feed({self.title or self.feed_url})"


Entry.model_rebuild()


class FetchStatus(str, Enum):
    """Outcome label of a page fetch."""
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class FetchOutcome:
    """Result of one page fetch; discarded once the entry is processed."""
    status: FetchStatus
    duration_seconds: float
    content: str = ""
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def has_content(self) -> bool:
        return self.succeeded and bool(self.content)


@dataclass
class ProcessingStats:
    """Per-batch counters for monitoring."""
    received_entries: int = 0
    filtered_out_entries: int = 0
    crawled_entries: int = 0
    crawl_skipped_entries: int = 0
    crawl_failed_entries: int = 0
    processing_time_seconds: float = 0.0

    @property
    def kept_entries(self) -> int:
        return self.received_entries - self.filtered_out_entries

    @property
    def crawl_success_rate(self) -> float:
        """Percentage of crawl attempts that succeeded."""
        if self.crawled_entries == 0:
            return 0.0
        return (1 - self.crawl_failed_entries / self.crawled_entries) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "received_entries": self.received_entries,
            "filtered_out_entries": self.filtered_out_entries,
            "kept_entries": self.kept_entries,
            "crawled_entries": self.crawled_entries,
            "crawl_skipped_entries": self.crawl_skipped_entries,
            "crawl_failed_entries": self.crawl_failed_entries,
            "processing_time_seconds": round(self.processing_time_seconds, 3),
        }
