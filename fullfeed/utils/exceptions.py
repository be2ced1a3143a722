"""
FullFeed Custom Exceptions
==========================

Exception hierarchy for FullFeed with error codes, context information,
and user-friendly messages.

Per-item extraction errors (TransportError, ParseError, NotFoundError,
ExcludedError, UnsupportedInputError) are caught by the feed assembler and
cause the item to be dropped. Feed-level errors (FeedFetchError, ParseError
raised while reading the source feed) surface to the HTTP layer.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"

    # Feed ingestion errors (F001-F099)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_STATUS = "F005"

    # Extraction errors (X001-X099)
    EXTRACTION_TRANSPORT = "X001"
    EXTRACTION_PARSE = "X002"
    EXTRACTION_NOT_FOUND = "X003"
    EXTRACTION_EXCLUDED = "X004"
    EXTRACTION_UNSUPPORTED_INPUT = "X005"
    EXTRACTION_TIMEOUT = "X006"

    # Output errors (O001-O099)
    SERIALIZATION_FAILED = "O001"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"


class FullFeedError(Exception):
    """Base exception for all FullFeed errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FullFeed error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

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
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _passthrough(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(FullFeedError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class ValidationError(FullFeedError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for FullFeedError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FeedFetchError(FullFeedError):
    """The source feed could not be fetched (maps to 502 at the HTTP layer)."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get("user_message", f"Failed to fetch feed: {message}"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class ExtractionError(FullFeedError):
    """Base class for errors raised while extracting a single item."""

    default_code = ErrorCode.EXTRACTION_PARSE
    default_recoverable = False

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        """Initialize extraction error.

        Args:
            message: Error message
            url: Article URL being extracted
            **kwargs: Additional arguments for FullFeedError
        """
        context = kwargs.get("context", {})
        if url:
            context["url"] = url
        self.url = url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", self.default_code),
            context=context,
            user_message=kwargs.get("user_message", "Article extraction failed"),
            recoverable=kwargs.get("recoverable", self.default_recoverable),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class TransportError(ExtractionError):
    """Network failure or non-success HTTP status."""

    default_code = ErrorCode.EXTRACTION_TRANSPORT
    default_recoverable = True

    def __init__(
        self, message: str, url: Optional[str] = None, status: Optional[int] = None, **kwargs
    ):
        context = kwargs.pop("context", {})
        if status is not None:
            context["status"] = status
        self.status = status
        super().__init__(message, url=url, context=context, **kwargs)


class ParseError(ExtractionError):
    """Malformed feed or HTML."""

    default_code = ErrorCode.EXTRACTION_PARSE


class NotFoundError(ExtractionError):
    """No content container matched the expected document shape."""

    default_code = ErrorCode.EXTRACTION_NOT_FOUND


class ExcludedError(ExtractionError):
    """URL excluded by allow/block policy. Not a failure and never retried."""

    default_code = ErrorCode.EXTRACTION_EXCLUDED


class UnsupportedInputError(ExtractionError):
    """Extractor was given an input variant it cannot handle."""

    default_code = ErrorCode.EXTRACTION_UNSUPPORTED_INPUT


class SerializationError(FullFeedError):
    """Assembled feed could not be serialized."""

    def __init__(self, message: str, output_format: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if output_format:
            context["output_format"] = output_format

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.SERIALIZATION_FAILED),
            context=context,
            user_message=kwargs.get("user_message", "Failed to serialize feed"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


# Exception handling utilities


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
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FullFeedError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = TransportError(
            f"Network error during {operation}: {exception}",
            context=context,
            user_message="Network connection failed",
        )

    else:
        error = FullFeedError(
            message=f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_retryable_error(exception: FullFeedError) -> bool:
    """Check if an error is worth retrying at the transport level."""
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.EXTRACTION_TRANSPORT,
        ErrorCode.EXTRACTION_TIMEOUT,
    }

    return exception.error_code in retryable_codes


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FullFeedError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
