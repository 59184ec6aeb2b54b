"""
Domain models for the Zotero → Readwise sync.

This module defines the core data structures that flow through a sync run:
annotations collected from Zotero, parent item metadata, highlights in the
Readwise wire format, per-batch delivery results, and the run summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

AnnotationType = Literal["highlight", "note", "image-rect"]
ScopeKind = Literal["library", "collection", "items"]


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime.

    Zotero and Readwise use a trailing 'Z' for UTC, which older Python
    versions' fromisoformat() does not accept. Naive values are assumed UTC.

    Args:
        value: ISO-8601 string, datetime, or None.

    Returns:
        Timezone-aware datetime, or None for empty input.

    Raises:
        ValueError: If the string is not a valid ISO-8601 timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string ending in 'Z'."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class SyncScope:
    """The subset of the Zotero library a sync run targets."""

    kind: ScopeKind = "library"
    """'library' for all top-level items, 'collection' for one collection's
    items, 'items' for an explicit list."""

    collection_key: str | None = None
    """Collection key when kind is 'collection'."""

    item_keys: tuple[str, ...] = ()
    """Parent item keys when kind is 'items'."""

    def describe(self) -> str:
        """Return a short human-readable description for logging."""
        if self.kind == "collection":
            return f"collection {self.collection_key}"
        if self.kind == "items":
            return f"{len(self.item_keys)} selected items"
        return "entire library"


@dataclass(frozen=True)
class SyncRequest:
    """Parameters of a single "run sync now" trigger."""

    scope: SyncScope
    """Which items to collect annotations from."""

    token: str
    """Readwise access token used for delivery."""


@dataclass(frozen=True)
class Attachment:
    """A child attachment of a Zotero item."""

    key: str
    parent_key: str
    content_type: str = ""
    filename: str = ""
    link_mode: str = ""

    @property
    def is_pdf(self) -> bool:
        """Whether the attachment is a PDF that can carry annotations."""
        if self.content_type == "application/pdf":
            return True
        return self.filename.lower().endswith(".pdf")


@dataclass(frozen=True)
class Creator:
    """One creator (author, editor...) of a Zotero item."""

    first_name: str = ""
    last_name: str = ""
    name: str = ""
    """Single-field name used by Zotero for institutional creators."""
    creator_type: str = "author"

    @property
    def display_name(self) -> str:
        """'first last' for two-field creators, the single name otherwise."""
        if self.name:
            return self.name.strip()
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class DocumentMetadata:
    """Parent item metadata needed to build a highlight."""

    key: str
    title: str = ""
    creators: tuple[Creator, ...] = ()
    item_type: str = ""


@dataclass(frozen=True)
class CollectedAnnotation:
    """One highlight or note annotation extracted from a Zotero PDF.

    Created fresh each run by the collector and discarded after mapping.
    """

    key: str
    """Zotero annotation key. Unique within a collection run."""

    item_key: str
    """Key of the top-level item (document) the annotation belongs to."""

    type: AnnotationType
    """Annotation type as reported by Zotero."""

    created_at: datetime
    """When the annotation was created (Zotero dateAdded)."""

    modified_at: datetime
    """When the annotation was last modified (Zotero dateModified)."""

    attachment_key: str | None = None
    """Key of the PDF attachment holding the annotation."""

    text: str | None = None
    """Highlighted text. Empty for note annotations."""

    comment: str | None = None
    """User comment attached to the annotation."""

    page: int | None = None
    """1-indexed page number within the PDF."""

    page_label: str | None = None
    """Printed page label, e.g. 'iv' or '127'."""

    color: str | None = None
    """Highlight color as a hex string, e.g. '#ffd400'."""

    tags: tuple[str, ...] = ()
    """Tag names in source order."""


@dataclass
class MappedHighlight:
    """A highlight in the Readwise wire format.

    ``annotation_key`` identifies the source annotation for reconciliation and
    is never sent to Readwise.
    """

    text: str
    title: str
    source_url: str
    annotation_key: str
    note: str | None = None
    author: str | None = None
    category: str | None = None
    highlight_url: str | None = None
    location_type: str | None = None
    location: str | None = None
    highlighted_at: str | None = None
    tags: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON object sent to Readwise, omitting empty fields."""
        payload: dict[str, Any] = {
            "text": self.text,
            "title": self.title,
            "source_url": self.source_url,
        }
        optional = {
            "note": self.note,
            "author": self.author,
            "category": self.category,
            "highlight_url": self.highlight_url,
            "location_type": self.location_type,
            "location": self.location,
            "highlighted_at": self.highlighted_at,
        }
        for name, value in optional.items():
            if value is not None:
                payload[name] = value
        if self.tags:
            payload["tags"] = list(self.tags)
        return payload


@dataclass(frozen=True)
class CreatedHighlight:
    """A highlight Readwise confirmed as created."""

    remote_id: str
    """Server-assigned highlight id."""

    text: str | None = None
    note: str | None = None
    annotation_key: str | None = None
    """Source annotation key, or None if the record could not be correlated."""


@dataclass
class SendResult:
    """Outcome of delivering a list of highlights."""

    successful_highlights: list[CreatedHighlight] = field(default_factory=list)
    """Created highlights across all successful batches, in batch order."""

    failed_batches_content: list[list[MappedHighlight]] = field(default_factory=list)
    """Content of each batch that exhausted its attempts, in batch order."""

    total_batches: int = 0

    @property
    def failed_highlights_count(self) -> int:
        """Total number of highlights inside failed batches."""
        return sum(len(batch) for batch in self.failed_batches_content)


class SyncPhase(Enum):
    """States of the sync orchestrator."""

    IDLE = "idle"
    LOADING_STATE = "loading_state"
    COLLECTING = "collecting"
    MAPPING = "mapping"
    SENDING = "sending"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncSummary:
    """Summary returned to the caller of a sync run."""

    new_highlights_synced: int = 0
    """Highlights Readwise confirmed as created."""

    total_processed: int = 0
    """Annotations collected from Zotero."""

    mapping_failures: int = 0
    """Annotations that could not be mapped and were not sent."""

    send_failures: int = 0
    """Batches that exhausted all delivery attempts."""

    failed_highlights_count: int = 0
    """Highlights inside failed batches."""

    already_synced: int = 0
    """Collected annotations skipped because they were already in the ledger."""

    collection_failures: int = 0
    """Items skipped because their attachments or annotations could not be read."""

    phase: SyncPhase = SyncPhase.DONE
    """Final orchestrator state: DONE or FAILED."""

    error: str | None = None
    """Error message when the run failed critically."""

    total_time: float = 0.0
    """Run duration in seconds."""

    @property
    def failed(self) -> bool:
        """Whether the run ended in the FAILED state."""
        return self.phase is SyncPhase.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Return the summary counters as a plain dictionary."""
        return {
            "new_highlights_synced": self.new_highlights_synced,
            "total_processed": self.total_processed,
            "mapping_failures": self.mapping_failures,
            "send_failures": self.send_failures,
            "failed_highlights_count": self.failed_highlights_count,
            "already_synced": self.already_synced,
            "collection_failures": self.collection_failures,
            "phase": self.phase.value,
            "error": self.error,
        }


@dataclass
class SyncPreview:
    """Result of a dry run: what a sync would send, without sending it."""

    highlights: list[MappedHighlight] = field(default_factory=list)
    total_processed: int = 0
    already_synced: int = 0
    mapping_failures: int = 0
    collection_failures: int = 0
    last_sync_at: datetime | None = None
