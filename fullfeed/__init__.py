"""
FullFeed - Feed Entry Enrichment Pipeline
=========================================

Turns a batch of freshly fetched feed entries into stored, safe content.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: Environment variables with Pydantic validation
- Ingestion: Original page scraping, rule-based rewriting, HTML sanitization
- Processing: Keep-list / block-list filtering and the enrichment pipeline
- Monitoring: Scraper request metrics
"""

__version__ = "1.0.0"
__author__ = "FullFeed Development Team"
__description__ = "Feed entry filtering, full-content crawling and sanitization"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FullFeedError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FullFeedError",
]
