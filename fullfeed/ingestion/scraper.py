"""
Web Page Scraper
================

Fetches the original web page of an entry and extracts the article body.

Extraction uses, in order of preference:
1. The feed's scraper rules (a CSS selector list)
2. Predefined rules for the page's domain
3. Readability on the whole document
"""

import time
from typing import Optional

import requests
from bs4 import BeautifulSoup, UnicodeDammit
from readability import Document

from ..config.settings import FullFeedSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ScraperError, ValidationError, ErrorCode
from ..utils.validators import URLValidator


# CSS selectors for sites whose layout readability handles poorly
PREDEFINED_SCRAPER_RULES = {
    "arstechnica.com": "div.article-content",
    "github.com": "article.entry-content, article.markdown-body",
    "lemonde.fr": "article",
    "lwn.net": "div.ArticleText",
    "medium.com": "article section",
    "opensource.com": "div.article-body",
    "theverge.com": "h2.c-entry-summary, div.c-entry-hero, div.c-entry-content",
    "wired.com": "main figure, article",
}

ALLOWED_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class WebScraper:
    """Synchronous page fetcher with rule-based and readability extraction."""

    def __init__(
        self,
        settings: Optional[FullFeedSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize scraper.

        Args:
            settings: FullFeed settings (default: global settings)
            session: requests session to reuse (default: new session)
        """
        settings = settings or get_settings()
        self.timeout = settings.scraper.timeout
        self.default_user_agent = settings.scraper.default_user_agent
        self.max_body_size = settings.scraper.max_body_size
        self.verify_ssl = settings.scraper.verify_ssl
        self.session = session or requests.Session()
        self.logger = get_logger_for_component("scraper")

    def fetch(self, url: str, scraper_rules: Optional[str] = "", user_agent: Optional[str] = "") -> str:
        """Download a page and extract its main content.

        Args:
            url: Page URL
            scraper_rules: CSS selector list; predefined rules or readability when empty
            user_agent: User agent header; the configured default when empty

        Returns:
            Extracted HTML, possibly empty when nothing could be extracted

        Raises:
            ScraperError: If the page cannot be downloaded or parsed
        """
        try:
            page_url = URLValidator.validate_page_url(url)
        except ValidationError as e:
            raise ScraperError(
                f"Invalid page URL {url!r}: {e}",
                url=url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            ) from e

        start_time = time.monotonic()
        page = self._download(page_url, user_agent or self.default_user_agent)

        rules = self._rules_for(page_url, scraper_rules)
        if rules:
            content = self._scrape_with_rules(page_url, page, rules)
            method = "rules"
        else:
            content = self._scrape_with_readability(page_url, page)
            method = "readability"

        self.logger.debug(
            f"Scraped {page_url} using {method}: {len(page)} -> {len(content)} chars "
            f"in {time.monotonic() - start_time:.2f}s"
        )
        return content

    def _rules_for(self, url: str, scraper_rules: Optional[str]) -> str:
        if scraper_rules and scraper_rules.strip():
            return scraper_rules.strip()
        return PREDEFINED_SCRAPER_RULES.get(URLValidator.domain(url), "")

    def _download(self, url: str, user_agent: str) -> str:
        headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.5",
        }

        try:
            response = self.session.get(
                url,
                headers=headers,
                timeout=self.timeout,
                stream=True,
                verify=self.verify_ssl,
            )
        except requests.Timeout as e:
            raise ScraperError(
                f"Request timeout after {self.timeout}s",
                url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise ScraperError(
                f"Request failed: {e}",
                url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        try:
            self._check_response(url, response)
            body = self._read_body(url, response)
        finally:
            response.close()

        declared = [response.encoding] if response.encoding else []
        return UnicodeDammit(body, declared).unicode_markup or ""

    def _check_response(self, url: str, response: requests.Response) -> None:
        status = response.status_code
        if status in (401, 403):
            raise ScraperError(
                f"HTTP {status}: access denied",
                url=url,
                error_code=ErrorCode.FEED_ACCESS_DENIED,
                recoverable=False,
            )
        if status == 404:
            raise ScraperError(
                "HTTP 404: page not found",
                url=url,
                error_code=ErrorCode.FEED_NOT_FOUND,
                recoverable=False,
            )
        if status >= 400:
            raise ScraperError(
                f"HTTP {status}: {response.reason}",
                url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            )

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
        if content_type and content_type not in ALLOWED_CONTENT_TYPES:
            raise ScraperError(
                f"Unsupported content type {content_type!r}",
                url=url,
                error_code=ErrorCode.CONTENT_EXTRACTION_FAILED,
                recoverable=False,
            )

    def _read_body(self, url: str, response: requests.Response) -> bytes:
        chunks = []
        size = 0
        try:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                size += len(chunk)
                if size > self.max_body_size:
                    raise ScraperError(
                        f"Page larger than {self.max_body_size} bytes",
                        url=url,
                        error_code=ErrorCode.CONTENT_TOO_LARGE,
                        recoverable=False,
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise ScraperError(
                f"Failed to read response body: {e}",
                url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e
        return b"".join(chunks)

    def _scrape_with_rules(self, url: str, page: str, rules: str) -> str:
        """Concatenate the outer HTML of every element matching the rules."""
        soup = BeautifulSoup(page, "html.parser")
        try:
            matches = soup.select(rules)
        except Exception as e:
            raise ScraperError(
                f"Invalid scraper rules {rules!r}: {e}",
                url=url,
                error_code=ErrorCode.CONTENT_EXTRACTION_FAILED,
                recoverable=False,
            ) from e

        return "".join(str(element) for element in matches)

    def _scrape_with_readability(self, url: str, page: str) -> str:
        if not page.strip():
            return ""

        try:
            return Document(page, url=url).summary(html_partial=True)
        except Exception as e:
            raise ScraperError(
                f"Readability extraction failed: {e}",
                url=url,
                error_code=ErrorCode.CONTENT_EXTRACTION_FAILED,
            ) from e
