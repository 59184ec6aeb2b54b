"""Logging utilities for the Zotero → Readwise sync.

This module provides user-facing log helpers that integrate with Hydra's
logging system and support unicode/emoji for terminal output, falling back to
ASCII markers when the terminal cannot render them (or FORCE_ASCII=1).
"""

import logging
import sys

from tabulate import tabulate

from zotero_readwise_sync.domain.models import MappedHighlight, SyncScope, SyncSummary
from zotero_readwise_sync.utils.progress import supports_unicode


def _format_with_emoji(message: str, emoji: str, fallback: str) -> str:
    """Format message with emoji or fallback text.

    Args:
        message: The message text to format
        emoji: Unicode emoji character to prepend
        fallback: ASCII fallback text to use if unicode not supported

    Returns:
        Formatted message with emoji or fallback
    """
    if supports_unicode():
        return f"{emoji} {message}"
    else:
        return f"{fallback} {message}"


def _shorten(text: str, width: int) -> str:
    return text[: width - 3] + "..." if len(text) > width else text


def log_startup(logger: logging.Logger, message: str) -> None:
    """Log sync startup message.

    Example:
        >>> log_startup(logger, "Starting Zotero → Readwise sync")
        # Output: "🚀 Starting Zotero → Readwise sync" or "[START] ..."
    """
    logger.info(_format_with_emoji(message, "🚀", "[START]"))


def log_scope(logger: logging.Logger, scope: SyncScope, dry_run: bool) -> None:
    """Log which part of the library the run covers.

    Example:
        >>> log_scope(logger, SyncScope(kind="collection", collection_key="AB12"), False)
        # Output: "📋 Scope: collection AB12"
    """
    message = f"Scope: {scope.describe()}"
    if dry_run:
        message += " (dry run, nothing will be sent)"
    logger.info(_format_with_emoji(message, "📋", "[CONFIG]"))


def log_collection_summary(
    logger: logging.Logger,
    collected: int,
    already_synced: int,
    collection_failures: int = 0,
) -> None:
    """Log how many annotations were collected and how many are new.

    Example:
        >>> log_collection_summary(logger, 12, 4)
        # Output: "📥 Collected 12 annotations (8 new, 4 already synced)"
    """
    new = collected - already_synced
    message = (
        f"Collected {collected} annotations ({new} new, "
        f"{already_synced} already synced)"
    )
    logger.info(_format_with_emoji(message, "📥", "[COLLECT]"))
    if collection_failures:
        log_skipped_annotations(
            logger, collection_failures, "items could not be read from Zotero"
        )


def log_skipped_annotations(logger: logging.Logger, count: int, reason: str) -> None:
    """Log a number of skipped annotations or items with the reason.

    Example:
        >>> log_skipped_annotations(logger, 2, "mapping failed")
        # Output: "⏭️ Skipped 2: mapping failed" or "[SKIP] Skipped 2: mapping failed"
    """
    message = f"Skipped {count}: {reason}"
    logger.info(_format_with_emoji(message, "⏭️", "[SKIP]"))


def log_batch_failure(
    logger: logging.Logger, batch_number: int, batch_size: int, error: Exception
) -> None:
    """Log a batch that could not be delivered.

    Example:
        >>> log_batch_failure(logger, 2, 100, ReadwiseAPIError("Server error"))
        # Output: "❌ Batch 2 (100 highlights) not delivered: Server error"
    """
    message = f"Batch {batch_number} ({batch_size} highlights) not delivered: {error}"
    logger.error(_format_with_emoji(message, "❌", "[ERROR]"))


def log_completion(logger: logging.Logger) -> None:
    """Log sync completion.

    Example:
        >>> log_completion(logger)
        # Output: "✅ Sync completed" or "[DONE] Sync completed"
    """
    logger.info(_format_with_emoji("Sync completed", "✅", "[DONE]"))


def log_error(logger: logging.Logger, error: Exception, context: dict) -> None:
    """Log an error with structured context information.

    Args:
        logger: Logger instance to use for logging
        error: Exception that was raised
        context: Dictionary containing context information such as:
            - step: Sync phase where the error occurred
            - scope: Description of the sync scope

    Example:
        >>> context = {"step": "collecting", "scope": "entire library"}
        >>> log_error(logger, ZoteroAuthError("Invalid key"), context)
        # Output: "❌ Sync failed (entire library)\\n   Step: collecting\\n
        # Error: ZoteroAuthError: Invalid key"
    """
    scope = context.get("scope", "Unknown")
    step = context.get("step", "Unknown")
    error_type = type(error).__name__

    header = _format_with_emoji(f"Sync failed ({scope})", "❌", "[ERROR]")
    logger.error(f"{header}\n   Step: {step}\n   Error: {error_type}: {error}")
    # Include full traceback only when in an active exception context
    if sys.exc_info()[0] is not None:
        logger.exception("Full traceback:")


def log_summary_table(logger: logging.Logger, summary: SyncSummary) -> None:
    """Log the run summary as a table.

    Example:
        >>> log_summary_table(logger, summary)
        # Output: two-column table of summary counters
    """
    rows = [
        ["Annotations processed", summary.total_processed],
        ["Already synced", summary.already_synced],
        ["New highlights synced", summary.new_highlights_synced],
        ["Mapping failures", summary.mapping_failures],
        ["Failed batches", summary.send_failures],
        ["Highlights in failed batches", summary.failed_highlights_count],
    ]
    if summary.collection_failures:
        rows.append(["Items not readable", summary.collection_failures])

    tablefmt = "grid" if supports_unicode() else "simple"
    logger.info("")
    logger.info("Summary:")
    logger.info(tabulate(rows, headers=["Metric", "Count"], tablefmt=tablefmt))


def log_preview_table(
    logger: logging.Logger, highlights: list[MappedHighlight], limit: int = 20
) -> None:
    """Log pending highlights of a dry run as a table.

    At most ``limit`` rows are shown; the remainder is reported as a count.
    """
    if not highlights:
        logger.info("Preview: nothing to send")
        return

    rows = [
        [
            _shorten(h.title, 30),
            h.location or "",
            _shorten(h.text.replace("\n", " "), 50),
            ", ".join(h.tags),
        ]
        for h in highlights[:limit]
    ]
    tablefmt = "grid" if supports_unicode() else "simple"
    logger.info("")
    logger.info(f"Preview ({len(highlights)} highlights would be sent):")
    logger.info(
        tabulate(rows, headers=["Title", "Page", "Text", "Tags"], tablefmt=tablefmt)
    )
    if len(highlights) > limit:
        logger.info(f"... and {len(highlights) - limit} more")


def log_timing_summary(logger: logging.Logger, total_time: float) -> None:
    """Log total execution time in a human-readable format.

    Example:
        >>> log_timing_summary(logger, 195.5)
        # Output: "⏱️ Total time: 3m 15s" or "[TIME] Total time: 3m 15s"
    """
    minutes = int(total_time // 60)
    seconds = int(total_time % 60)

    time_str = f"{minutes}m {seconds}s" if minutes > 0 else f"{seconds}s"

    logger.info("")
    logger.info(_format_with_emoji(f"Total time: {time_str}", "⏱️", "[TIME]"))


def get_error_suggestion(error_message: str) -> str:
    """Get actionable suggestion based on error message pattern.

    Args:
        error_message: Error message string to analyze

    Returns:
        Actionable suggestion string based on error pattern

    Example:
        >>> get_error_suggestion("Rate limited by Readwise (429)")
        "Wait a minute and retry; Readwise limits highlight requests"
    """
    error_lower = error_message.lower()

    if "rate limit" in error_lower or "429" in error_lower:
        return "Wait a minute and retry; Readwise limits highlight requests"
    elif "token" in error_lower:
        return "Check the Readwise token at https://readwise.io/access_token"
    elif (
        "network" in error_lower
        or "connection" in error_lower
        or "timeout" in error_lower
    ):
        return "Check internet connection and retry"
    elif "not found" in error_lower or "404" in error_lower:
        return "Verify the collection or item keys exist in Zotero"
    elif (
        "authentication" in error_lower or "401" in error_lower or "403" in error_lower
    ):
        return "Check API key validity and permissions"
    elif "state file" in error_lower:
        return "Check permissions of the state directory"
    else:
        return "Review error details and check logs for more information"


def log_error_summary(logger: logging.Logger, summary: SyncSummary) -> None:
    """Log failures of a run with suggestions and retry instructions."""
    problems = []
    if summary.error:
        problems.append(f"Sync failed: {summary.error}")
    if summary.send_failures:
        problems.append(
            f"{summary.send_failures} batches ({summary.failed_highlights_count} "
            f"highlights) could not be delivered"
        )
    if summary.mapping_failures:
        problems.append(
            f"{summary.mapping_failures} annotations could not be mapped"
        )
    if not problems:
        return

    logger.info("")
    logger.info(_format_with_emoji(f"Errors ({len(problems)}):", "❌", "[ERRORS]"))
    for idx, problem in enumerate(problems, start=1):
        logger.info(f"{idx}. {problem}")
        if summary.error and idx == 1:
            logger.info(f"   → Suggestion: {get_error_suggestion(summary.error)}")

    logger.info("")
    logger.info(
        "Undelivered highlights are not recorded as synced; re-run the sync "
        "to retry them."
    )
