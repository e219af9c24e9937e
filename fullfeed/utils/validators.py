"""
FullFeed Input Validators
=========================

URL and pattern validation helpers shared by the models, the scraper and the
sanitizer.
"""

import re
from urllib.parse import urlparse, urlunparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = {"http", "https"}

    # Schemes that must never survive inside stored HTML
    UNSAFE_SCHEME_PATTERN = re.compile(r"^\s*(javascript|vbscript|data|file):", re.IGNORECASE)

    @classmethod
    def validate_page_url(cls, url: str) -> str:
        """Validate and normalize a web page URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL (lowercase scheme and host, no fragment)

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {str(e)}",
                field_name="url",
            )

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                field_name="url",
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                field_name="url",
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or "/",
            fragment="",
        ))

    @classmethod
    def is_unsafe_url(cls, url: Optional[str]) -> bool:
        """Check whether a URL uses a scheme that can execute or embed code."""
        if not url:
            return False
        # Browsers ignore embedded control characters in schemes
        collapsed = re.sub(r"[\x00-\x20]+", "", url)
        return bool(cls.UNSAFE_SCHEME_PATTERN.match(collapsed))

    @classmethod
    def domain(cls, url: Optional[str]) -> str:
        """Return the lowercase hostname of a URL without a leading www."""
        if not url:
            return ""
        try:
            host = urlparse(url).hostname or ""
        except ValueError:
            return ""
        host = host.lower()
        return host[4:] if host.startswith("www.") else host


def validate_url(url: str) -> bool:
    """
    Quick validation function for URLs.

    Args:
        url: URL to validate

    Returns:
        True if URL is valid, False otherwise
    """
    try:
        URLValidator.validate_page_url(url)
        return True
    except ValidationError:
        return False


def validate_regex(pattern: Optional[str]) -> Optional[str]:
    """Validate a regular expression, returning it unchanged.

    Raises:
        ValueError: If the pattern does not compile
    """
    if not pattern:
        return pattern
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"invalid regular expression {pattern!r}: {e}") from e
    return pattern
