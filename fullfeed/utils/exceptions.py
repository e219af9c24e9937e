"""
FullFeed Custom Exceptions
==========================

Custom exception hierarchy for FullFeed with error codes, context
information, and user-friendly error messages.

Subclasses only declare their defaults. Keyword details passed to any
constructor (``url=``, ``entry_url=``, ``rule=``...) land in ``context``.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Page fetching errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"

    # Content processing errors (P001-P099)
    CONTENT_INVALID = "P001"
    CONTENT_TOO_LARGE = "P002"
    CONTENT_EXTRACTION_FAILED = "P003"
    FILTER_RULE_INVALID = "P004"
    REWRITE_RULE_FAILED = "P005"
    SANITIZE_FAILED = "P006"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"

    # System errors (S001-S099)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


class FullFeedError(Exception):
    """Base exception for all FullFeed errors."""

    default_error_code: Optional[ErrorCode] = None
    default_user_message: Optional[str] = None
    default_recoverable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
        **details: Any,
    ):
        """Initialize FullFeed error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code (default: the class default)
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable (default: the class default)
            **details: Named context values; None values are dropped
        """
        super().__init__(message)
        self.error_code = error_code or self.default_error_code
        self.context = dict(context or {})
        self.context.update({k: v for k, v in details.items() if v is not None})
        self.user_message = user_message or self._default_user_message(message)
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _default_user_message(self, message: str) -> str:
        if self.default_user_message is None:
            return message
        return self.default_user_message.format(message=message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(FullFeedError):
    """Configuration-related errors. Detail: ``config_key``."""

    default_error_code = ErrorCode.CONFIG_INVALID
    default_user_message = "Configuration error: {message}"


class DatabaseError(FullFeedError):
    """Database-related errors. Detail: ``query``."""

    default_error_code = ErrorCode.DATABASE_CONNECTION
    default_user_message = "Database operation failed"
    default_recoverable = True


class FeedError(FullFeedError):
    """Remote fetching errors. Detail: ``url``."""

    default_error_code = ErrorCode.FEED_NETWORK_ERROR
    default_user_message = "Unable to fetch content: {message}"
    default_recoverable = True


class ScraperError(FeedError):
    """Web page fetching and extraction errors."""


class ProcessingError(FullFeedError):
    """Entry processing errors. Detail: ``entry_url``."""

    default_error_code = ErrorCode.CONTENT_INVALID
    default_user_message = "Entry processing failed"
    default_recoverable = True


class FilterRuleError(ProcessingError):
    """Invalid keep-list or block-list pattern. Details: ``rule_name``, ``pattern``."""

    default_error_code = ErrorCode.FILTER_RULE_INVALID
    default_user_message = "Invalid filter rule: {message}"
    default_recoverable = False


class RewriteError(ProcessingError):
    """A single rewrite rule failed to apply. Detail: ``rule``."""

    default_error_code = ErrorCode.REWRITE_RULE_FAILED


class ValidationError(FullFeedError):
    """Data validation errors. Detail: ``field_name``."""

    default_error_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def _default_user_message(self, message: str) -> str:
        return f"Invalid {self.context.get('field_name', 'input')}: {message}"


# Exception handling utilities

# Builtin exception type -> (FullFeed class, code, verb, user message, recoverable)
_BUILTIN_MAPPINGS = (
    ((ConnectionError, TimeoutError), FullFeedError, ErrorCode.FEED_NETWORK_ERROR,
     "Network error", "Network connection failed", True),
    (PermissionError, FullFeedError, ErrorCode.SYSTEM_PERMISSION_DENIED,
     "Permission denied", "Access denied", False),
    (FileNotFoundError, ConfigurationError, ErrorCode.CONFIG_MISSING,
     "Required file not found", "Configuration file missing", False),
    (MemoryError, FullFeedError, ErrorCode.SYSTEM_MEMORY_ERROR,
     "Memory exhausted", "System resources exhausted", True),
)


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FullFeedError:
    """Convert generic exceptions to FullFeed exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FullFeed exception with proper categorization
    """
    if isinstance(exception, FullFeedError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    context = dict(context or {})
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    for types, error_class, code, prefix, user_message, recoverable in _BUILTIN_MAPPINGS:
        if isinstance(exception, types):
            error = error_class(
                f"{prefix} during {operation}: {exception}",
                error_code=code,
                context=context,
                user_message=user_message,
                recoverable=recoverable,
            )
            break
    else:
        error = FullFeedError(
            f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    error.__cause__ = exception
    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


RETRYABLE_CODES = frozenset({
    ErrorCode.FEED_NETWORK_ERROR,
    ErrorCode.FEED_FETCH_TIMEOUT,
    ErrorCode.DATABASE_CONNECTION,
})


def is_retryable_error(exception: FullFeedError) -> bool:
    """Check if an error is worth retrying (recoverable and a transient code)."""
    return exception.recoverable and exception.error_code in RETRYABLE_CODES


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FullFeedError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
