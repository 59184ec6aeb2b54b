"""Sync orchestration: one Zotero → Readwise run from state load to reconcile.

This module drives the collector, mapper, sender and state store through the
run phases (loading state, collecting, mapping, sending, reconciling) and
returns a SyncSummary. Per-item collection and mapping failures and per-batch
delivery failures are counted, not raised. Any other error ends the run in the
FAILED phase with a zero-progress summary and unchanged state. A missing token
is a configuration error and is raised to the caller.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import logging
import time

from ..clients.exceptions import MappingError
from ..domain.config import ConfigError, SyncConfig
from ..domain.mapper import HighlightMapper
from ..domain.models import (
    CollectedAnnotation,
    MappedHighlight,
    SendResult,
    SyncPhase,
    SyncPreview,
    SyncRequest,
    SyncSummary,
)
from ..storage.state_store import StateStore
from .collector import AnnotationCollector
from .sender import HighlightSender

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """Runs a complete sync and reports the outcome.

    Only one run should use a given state store at a time; the orchestrator
    does not lock it.

    Attributes:
        phase: Current run phase, IDLE before the first run.

    Example:
        >>> orchestrator = SyncOrchestrator(
        ...     collector, mapper, sender, JsonFileStateStore(state_config),
        ...     SyncConfig(),
        ... )
        >>> summary = orchestrator.run(SyncRequest(SyncScope(), token))
        >>> print(summary.new_highlights_synced)
    """

    def __init__(
        self,
        collector: AnnotationCollector,
        mapper: HighlightMapper,
        sender: HighlightSender,
        state_store: StateStore,
        config: SyncConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.collector = collector
        self.mapper = mapper
        self.sender = sender
        self.state_store = state_store
        self.config = config
        self.clock = clock or _utc_now
        self.phase = SyncPhase.IDLE

    def _enter(self, phase: SyncPhase) -> None:
        logger.debug(f"Sync phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _map_all(
        self, annotations: list[CollectedAnnotation]
    ) -> tuple[list[MappedHighlight], int]:
        """Map annotations concurrently, keeping input order.

        Returns:
            Tuple of (mapped highlights, number of mapping failures).
        """
        if not annotations:
            return [], 0

        workers = min(self.config.mapping_workers, len(annotations))
        mapped: list[MappedHighlight] = []
        failures = 0
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.mapper.map, annotation)
                for annotation in annotations
            ]
            for annotation, future in zip(annotations, futures):
                try:
                    mapped.append(future.result())
                except MappingError as e:
                    failures += 1
                    logger.warning(f"Mapping failed: {e}")
                except Exception as e:
                    failures += 1
                    logger.error(
                        f"Unexpected error mapping annotation {annotation.key}: {e}",
                        exc_info=True,
                    )
        return mapped, failures

    def _collect_pending(
        self, request: SyncRequest
    ) -> tuple[list[CollectedAnnotation], list[CollectedAnnotation], datetime | None]:
        """Load state, collect, and split annotations at the dedup gate.

        Returns:
            Tuple of (all collected, not yet synced, last sync time).
        """
        # Parent items may have changed since the previous run
        self.mapper.clear_cache()
        self._enter(SyncPhase.LOADING_STATE)
        last_sync_at = self.state_store.get_last_sync_at()
        mapping = self.state_store.get_mapping()
        logger.info(
            f"Loaded state: last sync "
            f"{last_sync_at.isoformat() if last_sync_at else 'never'}, "
            f"{len(mapping)} synced annotations"
        )

        self._enter(SyncPhase.COLLECTING)
        collected = self.collector.collect_all(request.scope, since=last_sync_at)
        pending = [a for a in collected if a.key not in mapping]
        return collected, pending, last_sync_at

    def _restore_mapping(self, previous_mapping: dict[str, str]) -> None:
        """Put back the ledger read before reconciling after a failed commit."""
        logger.warning(
            f"Could not advance last sync time; restoring ledger of "
            f"{len(previous_mapping)} entries"
        )
        try:
            self.state_store.save_mapping(previous_mapping)
        except Exception as e:
            logger.error(
                f"Failed to restore ledger, it may hold entries of this run: {e}",
                exc_info=True,
            )

    def _reconcile(self, result: SendResult, started_at: datetime) -> int:
        """Record created highlights in the ledger and advance the sync time.

        Returns:
            Number of highlights Readwise confirmed as created.
        """
        created = result.successful_highlights
        if not created:
            logger.warning(
                "No highlights were confirmed created; state left unchanged"
            )
            return 0

        # Re-read so the save is a merge with the latest persisted ledger
        mapping = self.state_store.get_mapping()
        previous_mapping = dict(mapping)
        added = 0
        for highlight in created:
            if highlight.annotation_key is None:
                continue
            mapping[highlight.annotation_key] = highlight.remote_id
            added += 1
        if added < len(created):
            logger.warning(
                f"{len(created) - added} created highlights could not be "
                f"linked to a source annotation"
            )

        self.state_store.save_mapping(mapping)
        try:
            self.state_store.set_last_sync_at(started_at)
        except Exception:
            # Both values are committed or neither is
            self._restore_mapping(previous_mapping)
            raise
        logger.info(
            f"Recorded {added} new mapping entries; last sync set to "
            f"{started_at.isoformat()}"
        )
        return len(created)

    def run(self, request: SyncRequest) -> SyncSummary:
        """Execute one sync run.

        Args:
            request: Scope to collect from and the Readwise token.

        Returns:
            SyncSummary. On a critical failure the summary has phase FAILED,
            zero progress, and the error message.

        Raises:
            ConfigError: If the token is missing or empty.
        """
        if not request.token or not request.token.strip():
            raise ConfigError("Readwise API token is required to run a sync")

        start_time = time.monotonic()
        started_at = self.clock()
        try:
            collected, pending, _ = self._collect_pending(request)
            summary = SyncSummary(
                total_processed=len(collected),
                already_synced=len(collected) - len(pending),
                collection_failures=self.collector.collection_failures,
            )
            if not collected:
                logger.info("No new or modified annotations found")
                self._enter(SyncPhase.DONE)
                summary.total_time = time.monotonic() - start_time
                return summary
            if summary.already_synced:
                logger.info(
                    f"Skipping {summary.already_synced} annotations already "
                    f"synced to Readwise"
                )

            self._enter(SyncPhase.MAPPING)
            highlights, summary.mapping_failures = self._map_all(pending)

            self._enter(SyncPhase.SENDING)
            result = self.sender.send(highlights, request.token)
            summary.send_failures = len(result.failed_batches_content)
            summary.failed_highlights_count = result.failed_highlights_count

            self._enter(SyncPhase.RECONCILING)
            summary.new_highlights_synced = self._reconcile(result, started_at)

            self._enter(SyncPhase.DONE)
            summary.total_time = time.monotonic() - start_time
            return summary
        except ConfigError:
            self._enter(SyncPhase.FAILED)
            raise
        except Exception as e:
            self._enter(SyncPhase.FAILED)
            logger.error(f"Sync failed: {e}", exc_info=True)
            return SyncSummary(
                phase=SyncPhase.FAILED,
                error=str(e),
                total_time=time.monotonic() - start_time,
            )

    def preview(self, request: SyncRequest) -> SyncPreview:
        """Collect and map pending annotations without sending or saving.

        Raises:
            CriticalSyncError: If the state store cannot be read.
            ZoteroClientError: If the scope cannot be resolved.
        """
        try:
            collected, pending, last_sync_at = self._collect_pending(request)
            self._enter(SyncPhase.MAPPING)
            highlights, mapping_failures = self._map_all(pending)
        except Exception:
            self._enter(SyncPhase.FAILED)
            raise
        self._enter(SyncPhase.DONE)
        return SyncPreview(
            highlights=highlights,
            total_processed=len(collected),
            already_synced=len(collected) - len(pending),
            mapping_failures=mapping_failures,
            collection_failures=self.collector.collection_failures,
            last_sync_at=last_sync_at,
        )
