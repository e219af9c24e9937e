"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FullFeed tests.
"""

import pytest
import tempfile
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_test_dir = Path(tempfile.gettempdir()) / "fullfeed_tests"
_test_dir.mkdir(exist_ok=True)
os.environ["FULLFEED_DATABASE__PATH"] = str(_test_dir / "fullfeed_test.db")
os.environ["FULLFEED_LOGGING__FILE_PATH"] = str(_test_dir / "fullfeed_test.log")
os.environ["FULLFEED_METRICS__ENABLED"] = "false"
os.environ["FULLFEED_FILTERING__STRICT_RULES"] = "false"
os.environ["FULLFEED_DEBUG"] = "true"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Temporary database file with the schema created."""
    from fullfeed.database.schema import DatabaseSchema

    temp_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_path = temp_file.name
    temp_file.close()

    schema = DatabaseSchema(db_path)
    schema.create_tables()

    yield db_path

    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def db_connection(temp_db):
    """Pooled connection to the temporary database."""
    from fullfeed.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection
    connection.close_all_connections()


@pytest.fixture
def entry_repo(db_connection):
    from fullfeed.storage.entry_repository import EntryRepository

    return EntryRepository(db_connection)


@pytest.fixture
def feed_repo(db_connection):
    from fullfeed.storage.feed_repository import FeedRepository

    return FeedRepository(db_connection)


# ============================================================================
# Settings & Model Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Fresh settings instance built from the test environment."""
    from fullfeed.config.settings import FullFeedSettings

    return FullFeedSettings()


@pytest.fixture
def sample_feed():
    """Feed with three entries and crawling enabled."""
    from fullfeed.database.models import Entry, Feed

    return Feed(
        id=1,
        feed_url="https://example.com/feed.xml",
        site_url="https://example.com/",
        title="Example",
        crawler=True,
        entries=[
            Entry(url="https://example.com/go-1-2", title="Go 1.2", content="<p>go summary</p>"),
            Entry(url="https://example.com/python", title="Python", content="<p>python summary</p>"),
            Entry(url="https://example.com/golang", title="Golang", content="<p>golang summary</p>"),
        ],
    )
