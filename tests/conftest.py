"""Shared test fixtures and in-memory fakes for the sync test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import json
from typing import Any

import pytest

from zotero_readwise_sync.clients.annotation_source import AnnotationSource
from zotero_readwise_sync.clients.exceptions import (
    ZoteroAPIError,
    ZoteroItemNotFoundError,
)
from zotero_readwise_sync.domain.config import RetryConfig, StateConfig, SyncConfig
from zotero_readwise_sync.domain.mapper import HighlightMapper
from zotero_readwise_sync.domain.models import (
    Attachment,
    CollectedAnnotation,
    Creator,
    DocumentMetadata,
    SyncScope,
)
from zotero_readwise_sync.orchestration.collector import AnnotationCollector
from zotero_readwise_sync.orchestration.orchestrator import SyncOrchestrator
from zotero_readwise_sync.orchestration.sender import HighlightSender
from zotero_readwise_sync.storage.state_store import JsonFileStateStore, StateStore

RUN_START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_record(
    key: str,
    annotation_type: str = "highlight",
    text: str = "",
    comment: str = "",
    page_index: int | None = 0,
    page_label: str = "",
    color: str = "#ffd400",
    tags: tuple[str, ...] = (),
    added: str = "2024-01-01T10:00:00Z",
    modified: str = "2024-01-01T10:00:00Z",
) -> dict[str, Any]:
    """Build a raw Zotero annotation record ('data' layout)."""
    record: dict[str, Any] = {
        "key": key,
        "itemType": "annotation",
        "annotationType": annotation_type,
        "annotationText": text or f"text of {key}",
        "annotationComment": comment,
        "annotationColor": color,
        "annotationPageLabel": page_label,
        "tags": [{"tag": t} for t in tags],
        "dateAdded": added,
        "dateModified": modified,
    }
    if annotation_type == "note":
        record["annotationText"] = text
    if page_index is not None:
        record["annotationPosition"] = json.dumps(
            {"pageIndex": page_index, "rects": [[0, 0, 10, 10]]}
        )
    return record


def make_annotation(
    key: str = "ANN1",
    item_key: str = "ITEM1",
    annotation_type: str = "highlight",
    text: str | None = "Highlighted text",
    comment: str | None = None,
    page: int | None = 3,
    page_label: str | None = None,
    attachment_key: str | None = "ATT1",
    color: str | None = "#ffd400",
    tags: tuple[str, ...] = (),
) -> CollectedAnnotation:
    created = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    return CollectedAnnotation(
        key=key,
        item_key=item_key,
        type=annotation_type,  # type: ignore[arg-type]
        created_at=created,
        modified_at=created,
        attachment_key=attachment_key,
        text=text,
        comment=comment,
        page=page,
        page_label=page_label,
        color=color,
        tags=tags,
    )


class FakeSource(AnnotationSource):
    """In-memory Zotero library."""

    def __init__(self) -> None:
        self.documents: dict[str, DocumentMetadata] = {}
        self.attachments: dict[str, list[Attachment]] = {}
        self.annotations: dict[str, list[dict[str, Any]]] = {}
        self.failing_items: set[str] = set()
        self.missing_documents: set[str] = set()
        self.document_calls: list[str] = []

    def add_item(
        self,
        item_key: str,
        title: str = "A Paper",
        creators: tuple[Creator, ...] = (Creator("Ada", "Lovelace"),),
        item_type: str = "journalArticle",
    ) -> None:
        self.documents[item_key] = DocumentMetadata(
            key=item_key, title=title, creators=creators, item_type=item_type
        )
        self.attachments.setdefault(item_key, [])

    def add_pdf(
        self, item_key: str, attachment_key: str, records: list[dict[str, Any]]
    ) -> None:
        if item_key not in self.documents:
            self.add_item(item_key)
        self.attachments[item_key].append(
            Attachment(
                key=attachment_key,
                parent_key=item_key,
                content_type="application/pdf",
                filename=f"{attachment_key}.pdf",
            )
        )
        self.annotations[attachment_key] = list(records)

    def search(self, scope: SyncScope) -> list[str]:
        if scope.kind == "items":
            return list(scope.item_keys)
        return list(self.documents)

    def get_attachments(self, item_key: str) -> list[Attachment]:
        if item_key in self.failing_items:
            raise ZoteroAPIError(f"boom fetching {item_key}")
        return list(self.attachments.get(item_key, []))

    def get_annotations(self, attachment_key: str) -> list[dict[str, Any]]:
        return list(self.annotations.get(attachment_key, []))

    def get_document(self, item_key: str) -> DocumentMetadata:
        self.document_calls.append(item_key)
        if item_key in self.missing_documents or item_key not in self.documents:
            raise ZoteroItemNotFoundError(f"Item {item_key} not found")
        return self.documents[item_key]


class FakeReadwiseClient:
    """Readwise client double that echoes created records.

    ``fail_when`` decides per call whether to raise ``error`` instead.
    """

    def __init__(
        self,
        fail_when: Callable[[list[dict[str, Any]]], bool] | None = None,
        error: Exception | None = None,
        drop_records: bool = False,
    ) -> None:
        self.calls: list[list[dict[str, Any]]] = []
        self.tokens: list[str] = []
        self.fail_when = fail_when
        self.error = error
        self.drop_records = drop_records
        self._next_id = 1000

    def post_highlights(
        self, highlights: list[dict[str, Any]], token: str
    ) -> list[dict[str, Any]]:
        self.calls.append(highlights)
        self.tokens.append(token)
        if self.fail_when is not None and self.fail_when(highlights):
            raise self.error  # type: ignore[misc]
        if self.drop_records:
            return []
        created = []
        for highlight in highlights:
            self._next_id += 1
            created.append(
                {
                    "id": self._next_id,
                    "text": highlight["text"],
                    "note": highlight.get("note", ""),
                }
            )
        return created


class MemoryStateStore(StateStore):
    def __init__(
        self,
        last_sync_at: datetime | None = None,
        mapping: dict[str, str] | None = None,
    ) -> None:
        self.last_sync_at = last_sync_at
        self.mapping = dict(mapping or {})
        self.save_count = 0

    def get_last_sync_at(self) -> datetime | None:
        return self.last_sync_at

    def set_last_sync_at(self, when: datetime) -> None:
        self.last_sync_at = when

    def get_mapping(self) -> dict[str, str]:
        return dict(self.mapping)

    def save_mapping(self, mapping: dict[str, str]) -> None:
        self.save_count += 1
        self.mapping = dict(mapping)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def readwise() -> FakeReadwiseClient:
    return FakeReadwiseClient()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def state_config(tmp_path) -> StateConfig:
    return StateConfig(state_dir=str(tmp_path / "state"))


@pytest.fixture
def file_store(state_config) -> JsonFileStateStore:
    return JsonFileStateStore(state_config)


@pytest.fixture
def make_orchestrator(sleeps):
    """Factory wiring real collector, mapper and sender around fakes."""

    def _make(
        source: FakeSource,
        client: FakeReadwiseClient,
        store: StateStore,
        batch_size: int = 100,
        sync_config: SyncConfig | None = None,
    ) -> SyncOrchestrator:
        sync_config = sync_config or SyncConfig(mapping_workers=4)
        return SyncOrchestrator(
            collector=AnnotationCollector(source, chunk_size=sync_config.chunk_size),
            mapper=HighlightMapper(source),
            sender=HighlightSender(
                client,  # type: ignore[arg-type]
                batch_size=batch_size,
                retry_config=RetryConfig(),
                sleep=sleeps.append,
            ),
            state_store=store,
            config=sync_config,
            clock=lambda: RUN_START,
        )

    return _make
