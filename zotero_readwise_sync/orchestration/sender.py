"""Batched delivery of highlights to Readwise.

This module partitions mapped highlights into batches, delivers each batch
with bounded retries and exponential backoff, and correlates the records
Readwise returns with the source annotations they were built from. Batches are
sent strictly one after another. A batch that exhausts its attempts is kept in
the result and never stops later batches.
"""

from collections import defaultdict, deque
from collections.abc import Callable
import logging
import time
from typing import Any

from ..clients.exceptions import (
    DeliveryError,
    ReadwiseClientError,
    ReadwiseRateLimitError,
)
from ..clients.readwise_client import ReadwiseClient
from ..domain.config import READWISE_MAX_BATCH_SIZE, ConfigError, RetryConfig
from ..domain.models import CreatedHighlight, MappedHighlight, SendResult
from ..utils.logging import log_batch_failure
from ..utils.progress import ProgressBar
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


def _content_key(text: Any, note: Any) -> tuple[str, str]:
    return (text or "", note or "")


def correlate(
    batch: list[MappedHighlight], records: list[dict[str, Any]]
) -> list[CreatedHighlight]:
    """Match created records returned for ``batch`` to source annotations.

    When Readwise returns exactly one record per submitted highlight, records
    are matched by position. Otherwise each record is matched to an unused
    highlight with the same text and note, each highlight used at most once;
    records without a match are kept with ``annotation_key=None``.
    """
    if len(records) == len(batch):
        return [
            CreatedHighlight(
                remote_id=str(record.get("id")),
                text=record.get("text", highlight.text),
                note=record.get("note", highlight.note),
                annotation_key=highlight.annotation_key,
            )
            for highlight, record in zip(batch, records)
        ]

    logger.warning(
        f"Readwise returned {len(records)} records for a batch of {len(batch)}; "
        f"falling back to content matching"
    )
    pending: dict[tuple[str, str], deque[str]] = defaultdict(deque)
    for highlight in batch:
        key = _content_key(highlight.text, highlight.note)
        pending[key].append(highlight.annotation_key)

    created = []
    for record in records:
        key = _content_key(record.get("text"), record.get("note"))
        annotation_key = None
        if pending.get(key):
            annotation_key = pending[key].popleft()
        else:
            logger.warning(
                f"Could not correlate Readwise highlight {record.get('id')} "
                f"with a source annotation"
            )
        created.append(
            CreatedHighlight(
                remote_id=str(record.get("id")),
                text=record.get("text"),
                note=record.get("note"),
                annotation_key=annotation_key,
            )
        )
    return created


class HighlightSender:
    """Delivers highlights to Readwise in sequential, retried batches.

    Example:
        >>> sender = HighlightSender(ReadwiseClient(config), batch_size=100)
        >>> result = sender.send(highlights, token="your-token")
        >>> print(len(result.successful_highlights), result.failed_highlights_count)
    """

    def __init__(
        self,
        client: ReadwiseClient,
        batch_size: int = READWISE_MAX_BATCH_SIZE,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the sender.

        Args:
            client: Readwise API client.
            batch_size: Highlights per request (at most 100).
            retry_config: Attempt ceiling and backoff settings.
            sleep: Function used to wait between attempts; injectable for tests.
        """
        if not 1 <= batch_size <= READWISE_MAX_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between 1 and {READWISE_MAX_BATCH_SIZE}, "
                f"got {batch_size}"
            )
        self.client = client
        self.batch_size = batch_size
        self.retry_config = retry_config or RetryConfig()
        self.policy = RetryPolicy(
            max_attempts=self.retry_config.max_attempts,
            initial_delay=self.retry_config.initial_delay,
            backoff_multiplier=self.retry_config.backoff_multiplier,
            max_delay=self.retry_config.max_delay,
            is_retryable=lambda e: isinstance(e, ReadwiseClientError),
            delay_override=self._rate_limit_delay,
            sleep=sleep,
        )

    def _rate_limit_delay(self, exception: Exception) -> float | None:
        if isinstance(exception, ReadwiseRateLimitError):
            if exception.retry_after is not None:
                return exception.retry_after
            return self.retry_config.default_retry_after
        return None

    def _batches(
        self, highlights: list[MappedHighlight]
    ) -> list[list[MappedHighlight]]:
        return [
            highlights[i : i + self.batch_size]
            for i in range(0, len(highlights), self.batch_size)
        ]

    def _send_batch(
        self, batch: list[MappedHighlight], batch_number: int, token: str
    ) -> list[CreatedHighlight]:
        """Deliver one batch, retrying transient failures.

        Raises:
            ReadwiseClientError: The last error once all attempts fail.
        """

        def on_retry(attempt: int, delay: float, e: Exception) -> None:
            logger.warning(
                f"Batch {batch_number} attempt {attempt}/"
                f"{self.policy.max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )

        payloads = [highlight.to_payload() for highlight in batch]
        records = self.policy.call(
            self.client.post_highlights, payloads, token, on_retry=on_retry
        )
        return correlate(batch, records)

    def send(self, highlights: list[MappedHighlight], token: str) -> SendResult:
        """Deliver all highlights and report what was created and what failed.

        Partial failure is reported in the result, never raised.

        Args:
            highlights: Mapped highlights in the order they should be sent.
            token: Readwise access token.

        Returns:
            SendResult with created highlights and failed batch content.

        Raises:
            ConfigError: If the token is missing or empty. No request is made.
        """
        if not token or not token.strip():
            raise ConfigError("Readwise API token is required to send highlights")

        batches = self._batches(highlights)
        result = SendResult(total_batches=len(batches))
        if not batches:
            return result

        logger.info(
            f"Sending {len(highlights)} highlights in {len(batches)} batches"
        )
        with ProgressBar(
            total=len(highlights), desc="Sending highlights", unit="highlight"
        ) as pbar:
            for batch_number, batch in enumerate(batches, start=1):
                try:
                    created = self._send_batch(batch, batch_number, token)
                except ReadwiseClientError as e:
                    failure = DeliveryError(
                        f"Delivery failed after {self.policy.max_attempts} attempts",
                        batch_number=batch_number,
                        batch_size=len(batch),
                        original_exception=e,
                    )
                    log_batch_failure(logger, batch_number, len(batch), failure)
                    result.failed_batches_content.append(list(batch))
                else:
                    result.successful_highlights.extend(created)
                    logger.debug(
                        f"Batch {batch_number}: {len(created)} highlights created"
                    )
                pbar.update(len(batch))
                pbar.set_postfix(
                    {
                        "ok": len(result.successful_highlights),
                        "failed": result.failed_highlights_count,
                    }
                )

        return result
