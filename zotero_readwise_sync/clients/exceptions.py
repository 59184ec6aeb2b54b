"""
Custom exception classes for client and sync operations (Zotero and Readwise).

This module defines domain-specific exceptions that provide clear error context
for API interactions and sync stages, making error handling and debugging easier
in the orchestration layer.

Exception Hierarchy:
- ZoteroClientError
  ├── ZoteroAPIError
  ├── ZoteroAuthError
  └── ZoteroItemNotFoundError
- ReadwiseClientError
  ├── ReadwiseAPIError
  ├── ReadwiseAuthError
  └── ReadwiseRateLimitError
- SyncError
  ├── CollectionError
  ├── MappingError
  ├── DeliveryError
  └── CriticalSyncError
"""


class _ContextError(Exception):
    """Shared base carrying a message and the exception that caused it."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message describing what went wrong.
            original_exception: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception

    def __str__(self) -> str:
        """Return string representation with context."""
        if self.original_exception:
            orig_type = type(self.original_exception).__name__
            orig_msg = str(self.original_exception)
            return f"{self.message} (Original: {orig_type}: {orig_msg})"
        return self.message


class ZoteroClientError(_ContextError):
    """Base exception for all Zotero client errors.

    All Zotero-related exceptions inherit from this class, allowing for
    broad exception catching when needed while maintaining specific error types
    for precise error handling.
    """


class ZoteroAPIError(ZoteroClientError):
    """Exception raised for Zotero API communication failures.

    Raised for network errors, rate limits, server errors (5xx), or other API
    communication issues that prevent successful interaction with Zotero.
    """

    pass


class ZoteroAuthError(ZoteroClientError):
    """Exception raised for authentication/authorization failures.

    Raised when the API key is invalid, expired, or lacks permission to read
    the library (401 Unauthorized, 403 Forbidden).
    """

    pass


class ZoteroItemNotFoundError(ZoteroClientError):
    """Exception raised when a requested item, collection or attachment is
    not found (404 Not Found)."""

    pass


class ReadwiseClientError(_ContextError):
    """Base exception for all Readwise client errors."""


class ReadwiseAPIError(ReadwiseClientError):
    """Exception raised for Readwise API communication failures.

    Raised for any non-2xx response other than a rate limit, and for network
    errors (in which case ``status_code`` is None).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_exception: Exception | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message describing what went wrong.
            status_code: HTTP status code returned by Readwise, if any.
            original_exception: Optional original exception that caused this error.
        """
        super().__init__(message, original_exception)
        self.status_code = status_code


class ReadwiseAuthError(ReadwiseAPIError):
    """Exception raised when Readwise rejects the access token (401/403)."""

    pass


class ReadwiseRateLimitError(ReadwiseClientError):
    """Exception raised when Readwise answers 429 Too Many Requests.

    Not a terminal error: the sender converts it into a wait of
    ``retry_after`` seconds before the next attempt.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            retry_after: Seconds requested by the server's Retry-After header,
                or None if the header was missing or unparseable.
        """
        super().__init__(message)
        self.retry_after = retry_after


class SyncError(_ContextError):
    """Base exception for failures inside a sync run."""


class CollectionError(SyncError):
    """Exception raised when one item's attachments or annotations cannot be
    fetched. Recovered locally by skipping the item."""

    def __init__(
        self,
        message: str,
        item_key: str,
        original_exception: Exception | None = None,
    ):
        super().__init__(message, original_exception)
        self.item_key = item_key


class MappingError(SyncError):
    """Exception raised when an annotation cannot be transformed into a
    Readwise highlight, e.g. because its parent item cannot be resolved."""

    def __init__(
        self,
        message: str,
        annotation_key: str,
        original_exception: Exception | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message describing what went wrong.
            annotation_key: Key of the annotation that failed to map.
            original_exception: Optional original exception that caused this error.
        """
        super().__init__(message, original_exception)
        self.annotation_key = annotation_key

    def __str__(self) -> str:
        """Return string representation with the annotation key."""
        return f"{super().__str__()} [Annotation: {self.annotation_key}]"


class DeliveryError(SyncError):
    """Exception describing a batch that could not be delivered after all
    retry attempts. Recorded in the send result rather than raised out of
    the sender."""

    def __init__(
        self,
        message: str,
        batch_number: int,
        batch_size: int,
        original_exception: Exception | None = None,
    ):
        super().__init__(message, original_exception)
        self.batch_number = batch_number
        self.batch_size = batch_size


class CriticalSyncError(SyncError):
    """Exception raised when a sync run cannot continue at all (for example
    the state store is unreadable). The orchestrator turns it into a failed
    run with zero progress."""

    pass
