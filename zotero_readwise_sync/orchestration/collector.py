"""Annotation collection from a Zotero library.

This module resolves a sync scope to items, walks their PDF attachments and
turns raw highlight/note annotation records into CollectedAnnotation objects.
Items are processed in fixed-size chunks and annotations are yielded lazily.
A failure reading one item is logged and counted, and collection continues
with the next item.
"""

from collections.abc import Iterator
from datetime import datetime
import json
import logging
from typing import Any

from ..clients.annotation_source import AnnotationSource
from ..clients.exceptions import CollectionError, ZoteroClientError
from ..domain.models import CollectedAnnotation, SyncScope, parse_timestamp
from ..utils.progress import ProgressBar

logger = logging.getLogger(__name__)

ITEM_CHUNK_SIZE = 200
COLLECTED_TYPES = ("highlight", "note")


def _page_index(record: dict[str, Any]) -> int | None:
    """Return the 1-indexed page of an annotation record, if known."""
    position = record.get("annotationPosition")
    if isinstance(position, str):
        try:
            position = json.loads(position)
        except json.JSONDecodeError:
            return None
    if not isinstance(position, dict):
        return None
    page_index = position.get("pageIndex")
    if isinstance(page_index, bool) or not isinstance(page_index, int):
        return None
    return page_index + 1


def _tag_names(record: dict[str, Any]) -> tuple[str, ...]:
    names = []
    for tag in record.get("tags", []):
        name = tag.get("tag") if isinstance(tag, dict) else tag
        if isinstance(name, str) and name and name not in names:
            names.append(name)
    return tuple(names)


def parse_annotation(
    record: dict[str, Any], item_key: str, attachment_key: str
) -> CollectedAnnotation:
    """Build a CollectedAnnotation from a raw Zotero annotation record.

    Raises:
        KeyError: If the record has no key.
        ValueError: If a timestamp cannot be parsed.
    """
    created_at = parse_timestamp(record.get("dateAdded"))
    modified_at = parse_timestamp(record.get("dateModified")) or created_at
    if created_at is None or modified_at is None:
        raise ValueError(f"Annotation {record.get('key')} has no timestamps")

    return CollectedAnnotation(
        key=record["key"],
        item_key=item_key,
        attachment_key=attachment_key,
        type=record.get("annotationType", ""),
        text=record.get("annotationText") or None,
        comment=record.get("annotationComment") or None,
        page=_page_index(record),
        page_label=record.get("annotationPageLabel") or None,
        color=record.get("annotationColor") or None,
        tags=_tag_names(record),
        created_at=created_at,
        modified_at=modified_at,
    )


class AnnotationCollector:
    """Collects highlight and note annotations from a source library.

    Attributes:
        collection_failures: Items skipped during the last ``collect`` call
            because their attachments or annotations could not be read.
        skipped_annotations: Records skipped because they were malformed.

    Example:
        >>> collector = AnnotationCollector(zotero_client, chunk_size=200)
        >>> for annotation in collector.collect(SyncScope(), since=last_sync):
        ...     print(annotation.key)
    """

    def __init__(
        self, source: AnnotationSource, chunk_size: int = ITEM_CHUNK_SIZE
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be greater than 0, got {chunk_size}")
        self.source = source
        self.chunk_size = chunk_size
        self.collection_failures = 0
        self.skipped_annotations = 0

    def _collect_item(
        self, item_key: str, since: datetime | None
    ) -> list[CollectedAnnotation]:
        """Return the annotations of one item that pass the filters.

        Raises:
            CollectionError: If attachments or annotations cannot be fetched.
        """
        try:
            attachments = self.source.get_attachments(item_key)
            collected = []
            for attachment in attachments:
                if not attachment.is_pdf:
                    continue
                for record in self.source.get_annotations(attachment.key):
                    if record.get("annotationType") not in COLLECTED_TYPES:
                        continue
                    try:
                        annotation = parse_annotation(record, item_key, attachment.key)
                    except (KeyError, ValueError) as e:
                        self.skipped_annotations += 1
                        logger.warning(
                            f"Skipping malformed annotation on item {item_key}: {e}"
                        )
                        continue
                    # Exclusive bound: annotations modified exactly at `since`
                    # were covered by the previous run.
                    if since is not None and annotation.modified_at <= since:
                        continue
                    collected.append(annotation)
        except ZoteroClientError as e:
            raise CollectionError(
                f"Failed to collect annotations for item {item_key}", item_key, e
            ) from e
        return collected

    def collect(
        self, scope: SyncScope, since: datetime | None = None
    ) -> Iterator[CollectedAnnotation]:
        """Yield annotations of PDF attachments in ``scope`` modified after ``since``.

        Args:
            scope: Which items to collect from.
            since: Exclusive lower bound on annotation modification time.

        Yields:
            Collected annotations in item order.

        Raises:
            ZoteroClientError: If the scope itself cannot be resolved.
        """
        self.collection_failures = 0
        self.skipped_annotations = 0

        item_keys = self.source.search(scope)
        logger.info(
            f"Collecting annotations from {len(item_keys)} items "
            f"({scope.describe()}, since={since.isoformat() if since else 'never'})"
        )

        with ProgressBar(
            total=len(item_keys), desc="Collecting annotations", unit="item"
        ) as pbar:
            for start in range(0, len(item_keys), self.chunk_size):
                chunk = item_keys[start : start + self.chunk_size]
                logger.debug(
                    f"Processing item chunk {start // self.chunk_size + 1} "
                    f"({len(chunk)} items)"
                )
                chunk_annotations: list[CollectedAnnotation] = []
                for item_key in chunk:
                    try:
                        chunk_annotations.extend(self._collect_item(item_key, since))
                    except CollectionError as e:
                        self.collection_failures += 1
                        logger.warning(f"Skipping item: {e}")
                    pbar.update(1)
                yield from chunk_annotations

    def collect_all(
        self, scope: SyncScope, since: datetime | None = None
    ) -> list[CollectedAnnotation]:
        """Collect every matching annotation into a list."""
        annotations = list(self.collect(scope, since))
        logger.debug(f"Collected {len(annotations)} annotations")
        return annotations
