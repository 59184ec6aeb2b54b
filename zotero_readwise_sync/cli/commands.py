"""Command implementations for the Zotero → Readwise sync CLI.

This module contains the command functions that implement the dry-run and
sync workflows. These commands are called from the main entry point after
configuration validation and client initialization.
"""

import logging

from zotero_readwise_sync.domain.config import AppConfig
from zotero_readwise_sync.domain.models import SyncRequest, SyncSummary
from zotero_readwise_sync.orchestration.orchestrator import SyncOrchestrator
from zotero_readwise_sync.utils.logging import (
    log_collection_summary,
    log_completion,
    log_error,
    log_error_summary,
    log_preview_table,
    log_scope,
    log_skipped_annotations,
    log_summary_table,
    log_timing_summary,
)


def dry_run_command(
    cfg: AppConfig,
    logger: logging.Logger,
    orchestrator: SyncOrchestrator,
    request: SyncRequest,
) -> int:
    """Preview the highlights a sync would send, without sending anything.

    Collects and maps pending annotations exactly as a sync would, then logs a
    preview table. Neither Readwise nor the state files are touched.

    Args:
        cfg: Application configuration object
        logger: Logger instance for logging messages
        orchestrator: Orchestrator wired with collector, mapper and state store
        request: Scope and token of the run

    Returns:
        Exit code: 0 for success
    """
    logger.info("Dry-run mode enabled - previewing highlights without sending")
    log_scope(logger, request.scope, dry_run=True)

    preview = orchestrator.preview(request)

    if preview.last_sync_at is not None:
        logger.info(f"Last sync: {preview.last_sync_at.isoformat()}")
    log_collection_summary(
        logger,
        preview.total_processed,
        preview.already_synced,
        preview.collection_failures,
    )
    if preview.mapping_failures:
        log_skipped_annotations(
            logger, preview.mapping_failures, "annotations could not be mapped"
        )
    log_preview_table(logger, preview.highlights)

    batches = -(-len(preview.highlights) // cfg.readwise.batch_size)
    logger.info(
        f"A sync would send {len(preview.highlights)} highlights in {batches} "
        f"batches"
    )
    return 0


def _determine_exit_code(summary: SyncSummary) -> int:
    """Determine the appropriate exit code from a sync summary.

    Returns:
        Exit code: 0 for success (including nothing to sync), 1 for partial
        failure, 2 for complete failure
    """
    if summary.failed:
        return 2

    if summary.mapping_failures or summary.send_failures:
        if summary.new_highlights_synced > 0:
            return 1  # Partial failure
        return 2  # Complete failure

    if summary.collection_failures:
        return 1
    return 0


def sync_command(
    cfg: AppConfig,
    logger: logging.Logger,
    orchestrator: SyncOrchestrator,
    request: SyncRequest,
) -> int:
    """Run a full sync and display the summary.

    Args:
        cfg: Application configuration object
        logger: Logger instance for logging messages
        orchestrator: Fully wired orchestrator
        request: Scope and token of the run

    Returns:
        Exit code: 0 for success, 1 for partial failure, 2 for complete failure
    """
    log_scope(logger, request.scope, dry_run=False)
    logger.info(
        f"Delivering to {cfg.readwise.base_url} in batches of "
        f"{cfg.readwise.batch_size}"
    )

    summary = orchestrator.run(request)

    if summary.failed:
        log_error(
            logger,
            RuntimeError(summary.error or "unknown error"),
            {"scope": request.scope.describe(), "step": "sync"},
        )
    else:
        log_collection_summary(
            logger,
            summary.total_processed,
            summary.already_synced,
            summary.collection_failures,
        )

    log_summary_table(logger, summary)
    log_timing_summary(logger, summary.total_time)
    log_error_summary(logger, summary)

    exit_code = _determine_exit_code(summary)
    if exit_code == 0:
        log_completion(logger)
    return exit_code
