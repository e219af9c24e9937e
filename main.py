#!/usr/bin/env python3
"""
FullFeed - Feed Entry Enrichment Pipeline
=========================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py fetch-page URL            # Crawl one page through the pipeline
    python main.py process-feed FEED_URL     # Filter, crawl and store a feed batch
    python main.py fetch-page --entry-id ID  # Re-fetch a stored entry and save it
    python main.py list-entries FEED_ID      # Show stored entries of a feed
"""

import sys
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from fullfeed.config.settings import get_settings
from fullfeed.database.schema import DatabaseSchema
from fullfeed.database.connection import get_db_manager
from fullfeed.database.models import Entry, Feed
from fullfeed.ingestion.feed_parser import FeedParser
from fullfeed.monitoring.metrics import get_scraper_metrics
from fullfeed.processing.processor import create_entry_processor
from fullfeed.storage import EntryRepository, FeedRepository
from fullfeed.utils.logging import configure_application_logging
from fullfeed.utils.exceptions import (
    FullFeedError,
    ValidationError,
    get_user_friendly_message,
    handle_exception,
    is_retryable_error,
)

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FullFeed - feed entry filtering, crawling and sanitization."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _setup_logging(ctx) -> None:
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FullFeed Configuration[/bold blue]")

    try:
        settings = get_settings()

        table = Table(title=f"{settings.app_name} {settings.version} Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Database", _check_database_config),
            ("Logging", _check_logging_config),
            ("Scraper", _check_scraper_config),
            ("Filtering", _check_filtering_config),
        ]

        all_passed = True
        for name, check_func in checks:
            status, details = check_func(settings)
            table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
            if not status:
                all_passed = False

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
        else:
            console.print("[bold red]❌ Configuration validation failed[/bold red]")
            sys.exit(1)

    except FullFeedError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing FullFeed Database[/bold blue]")

    try:
        settings = get_settings()
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)

        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if schema.verify_schema():
            console.print("[bold green]✅ Database initialized successfully![/bold green]")
            console.print(f"Database Path: {settings.database.path}")
        else:
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

    except (FullFeedError, OSError) as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('url', required=False)
@click.option('--entry-id', type=int, help='Re-fetch a stored entry with its feed rules and save the result')
@click.option('--rules', default='', help='CSS selectors used to extract the content')
@click.option('--rewrite', default='', help='Rewrite rules applied to the content')
@click.option('--user-agent', default='', help='User agent sent with the request')
@click.pass_context
def fetch_page(ctx, url, entry_id, rules, rewrite, user_agent):
    """Crawl a single page and print the sanitized content.

    Either crawl URL ad hoc with the given options, or re-fetch a stored
    entry (--entry-id) using its feed's rules and store the new content.
    """
    if (url is None) == (entry_id is None):
        raise click.UsageError("Pass either URL or --entry-id")

    _setup_logging(ctx)
    entry_repo = None

    try:
        if entry_id is not None:
            feed_repo, entry_repo = _open_repositories(get_settings())
            entry = _load_stored_entry(feed_repo, entry_repo, entry_id)
        else:
            feed = Feed(
                feed_url=url,
                scraper_rules=rules,
                rewrite_rules=rewrite,
                user_agent=user_agent,
            )
            entry = Entry(url=url)
            feed.set_entries([entry])

        console.print(f"[bold blue]🌐 Fetching page: {entry.url}[/bold blue]")
        processor = create_entry_processor()
        processor.process_entry_web_page(entry)

        if entry_repo is not None:
            entry_repo.update_entry_content(entry)

    except ValueError as e:
        console.print(f"[bold red]❌ Invalid options: {e}[/bold red]")
        sys.exit(1)
    except Exception as e:
        _fail(e, "fetch-page")

    if not entry.content:
        console.print("[yellow]No content could be extracted[/yellow]")
        return

    if entry_repo is not None:
        console.print(f"[bold green]✅ Updated entry #{entry.id}[/bold green]")
    console.print(f"[bold green]✅ Extracted {len(entry.content)} characters[/bold green]\n")
    click.echo(entry.content)


@cli.command()
@click.argument('feed_url')
@click.option('--crawler', is_flag=True, help='Fetch the original page of each new entry')
@click.option('--keeplist', default='', help='Only keep entries whose title matches this regex')
@click.option('--blocklist', default='', help='Drop entries whose title matches this regex')
@click.option('--rules', default='', help='CSS selectors used to extract crawled content')
@click.option('--rewrite', default='', help='Rewrite rules applied to every entry')
@click.pass_context
def process_feed(ctx, feed_url, crawler, keeplist, blocklist, rules, rewrite):
    """Fetch a feed, run the enrichment pipeline and store the entries."""
    _setup_logging(ctx)
    console.print(f"[bold blue]📡 Processing feed: {feed_url}[/bold blue]")

    try:
        settings = get_settings()
        feed_repo, entry_repo = _open_repositories(settings)

        feed = FeedParser(settings).fetch_feed(
            feed_url,
            crawler=crawler,
            keeplist_rules=keeplist,
            blocklist_rules=blocklist,
            scraper_rules=rules,
            rewrite_rules=rewrite,
        )
        feed_repo.save_feed(feed)

        processor = create_entry_processor(settings, store=entry_repo)
        stats = processor.process_feed_entries(feed)
        stored = entry_repo.create_entries_batch(feed.entries)

    except ValueError as e:
        console.print(f"[bold red]❌ Invalid options: {e}[/bold red]")
        sys.exit(1)
    except Exception as e:
        _fail(e, "process-feed")

    table = Table(title=f"Feed: {feed.title or feed.feed_url}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    for name, value in stats.to_dict().items():
        table.add_row(name.replace('_', ' ').title(), str(value))
    table.add_row("Stored Entries", str(stored))
    console.print(table)

    if settings.metrics.enabled:
        _print_scraper_metrics()


@cli.command()
@click.argument('feed_id', type=int)
@click.option('--limit', default=20, show_default=True, help='Number of entries to show')
@click.pass_context
def list_entries(ctx, feed_id, limit):
    """Show the most recently stored entries of a feed."""
    _setup_logging(ctx)

    try:
        feed_repo, entry_repo = _open_repositories(get_settings())
        feed = feed_repo.get_feed(feed_id)
        if feed is None:
            raise ValidationError(f"no stored feed #{feed_id}", field_name="feed_id")
        entries = entry_repo.get_entries_for_feed(feed_id, limit=limit)
    except Exception as e:
        _fail(e, "list-entries")

    table = Table(title=f"Entries of {feed.title or feed.feed_url}")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("URL")
    table.add_column("Content", style="green")

    for entry in entries:
        table.add_row(str(entry.id), entry.title or "", entry.url, f"{len(entry.content or '')} chars")
    console.print(table)


def _open_repositories(settings) -> tuple[FeedRepository, EntryRepository]:
    DatabaseSchema(settings.database.path).create_tables()
    db_manager = get_db_manager(settings.database.path)
    return FeedRepository(db_manager), EntryRepository(db_manager)


def _load_stored_entry(feed_repo: FeedRepository, entry_repo: EntryRepository, entry_id: int) -> Entry:
    """Load a stored entry attached to its stored feed."""
    entry = entry_repo.get_entry(entry_id)
    if entry is None:
        raise ValidationError(f"no stored entry #{entry_id}", field_name="entry_id")

    feed = feed_repo.get_feed(entry.feed_id) if entry.feed_id is not None else None
    if feed is None:
        raise ValidationError(f"entry #{entry_id} has no stored feed", field_name="entry_id")

    entry.attach(feed)
    return entry


def _fail(error: Exception, operation: str) -> None:
    """Log the error, print its user-facing message and exit with status 1."""
    error = handle_exception(error, logger, operation)
    message = get_user_friendly_message(error)
    if is_retryable_error(error):
        message += " (temporary failure, try again later)"
    console.print(f"[bold red]❌ {message}[/bold red]")
    sys.exit(1)


def _print_scraper_metrics() -> None:
    snapshot = get_scraper_metrics().snapshot()
    if not snapshot:
        return

    table = Table(title="Scraper Requests")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green")
    table.add_column("Average", style="green")
    table.add_column("Max", style="green")

    for status, summary in sorted(snapshot.items()):
        table.add_row(
            status,
            str(summary['count']),
            f"{summary['average_seconds']:.3f}s",
            f"{summary['max_seconds']:.3f}s",
        )
    console.print(table)


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_scraper_config(settings) -> tuple[bool, str]:
    scraper = settings.scraper
    return True, f"Timeout: {scraper.timeout}s, Max body: {scraper.max_body_size} bytes"


def _check_filtering_config(settings) -> tuple[bool, str]:
    mode = "strict" if settings.filtering.strict_rules else "lenient"
    return True, f"Invalid patterns: {mode}, Metrics: {settings.metrics.enabled}"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FullFeed interrupted by user[/yellow]")
        sys.exit(130)
