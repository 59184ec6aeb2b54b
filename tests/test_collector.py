"""Tests for AnnotationCollector."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import FakeSource, make_record

from zotero_readwise_sync.clients.exceptions import ZoteroAPIError
from zotero_readwise_sync.domain.models import Attachment, SyncScope
from zotero_readwise_sync.orchestration.collector import (
    AnnotationCollector,
    parse_annotation,
)

SINCE = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFilters:
    def test_keeps_only_highlights_and_notes(self, source: FakeSource):
        source.add_pdf(
            "ITEM1",
            "ATT1",
            [
                make_record("H", annotation_type="highlight"),
                make_record("N", annotation_type="note", comment="thought"),
                make_record("I", annotation_type="image"),
                make_record("INK", annotation_type="ink"),
            ],
        )

        collected = AnnotationCollector(source).collect_all(SyncScope())

        assert [a.key for a in collected] == ["H", "N"]

    def test_skips_non_pdf_attachments(self, source: FakeSource):
        source.add_item("ITEM1")
        source.attachments["ITEM1"].append(
            Attachment(key="EPUB1", parent_key="ITEM1", content_type="application/epub+zip")
        )
        source.annotations["EPUB1"] = [make_record("E")]
        source.add_pdf("ITEM1", "ATT1", [make_record("P")])

        collected = AnnotationCollector(source).collect_all(SyncScope())

        assert [a.key for a in collected] == ["P"]

    def test_since_is_exclusive(self, source: FakeSource):
        source.add_pdf(
            "ITEM1",
            "ATT1",
            [
                make_record("BEFORE", modified="2024-03-01T11:59:59Z"),
                make_record("EQUAL", modified="2024-03-01T12:00:00Z"),
                make_record("AFTER", modified="2024-03-01T12:00:01Z"),
            ],
        )

        collected = AnnotationCollector(source).collect_all(SyncScope(), since=SINCE)

        assert [a.key for a in collected] == ["AFTER"]

    def test_no_since_collects_everything(self, source: FakeSource):
        source.add_pdf("ITEM1", "ATT1", [make_record("A"), make_record("B")])
        assert len(AnnotationCollector(source).collect_all(SyncScope())) == 2


class TestScopesAndChunks:
    def test_items_scope_only_visits_given_items(self, source: FakeSource):
        source.add_pdf("ITEM1", "ATT1", [make_record("A")])
        source.add_pdf("ITEM2", "ATT2", [make_record("B")])

        collected = AnnotationCollector(source).collect_all(
            SyncScope(kind="items", item_keys=("ITEM2",))
        )

        assert [a.key for a in collected] == ["B"]
        assert collected[0].item_key == "ITEM2"

    def test_order_is_preserved_across_chunks(self, source: FakeSource):
        for i in range(7):
            source.add_pdf(f"ITEM{i}", f"ATT{i}", [make_record(f"K{i}")])

        collected = AnnotationCollector(source, chunk_size=3).collect_all(SyncScope())

        assert [a.key for a in collected] == [f"K{i}" for i in range(7)]

    def test_collect_is_lazy(self, source: FakeSource):
        source.add_pdf("ITEM1", "ATT1", [make_record("A")])
        generator = AnnotationCollector(source).collect(SyncScope())
        assert next(generator).key == "A"

    def test_invalid_chunk_size(self, source: FakeSource):
        with pytest.raises(ValueError):
            AnnotationCollector(source, chunk_size=0)


class TestFailureIsolation:
    def test_failing_item_is_skipped_and_counted(self, source: FakeSource):
        source.add_pdf("ITEM1", "ATT1", [make_record("A")])
        source.add_pdf("ITEM2", "ATT2", [make_record("B")])
        source.add_pdf("ITEM3", "ATT3", [make_record("C")])
        source.failing_items.add("ITEM2")
        collector = AnnotationCollector(source)

        collected = collector.collect_all(SyncScope())

        assert [a.key for a in collected] == ["A", "C"]
        assert collector.collection_failures == 1

    def test_scope_resolution_failure_propagates(self, source: FakeSource):
        def fail(scope):
            raise ZoteroAPIError("cannot list library")

        source.search = fail  # type: ignore[method-assign]
        with pytest.raises(ZoteroAPIError):
            AnnotationCollector(source).collect_all(SyncScope())

    def test_malformed_record_is_skipped(self, source: FakeSource):
        bad = make_record("BAD")
        bad["dateAdded"] = "not a date"
        source.add_pdf("ITEM1", "ATT1", [bad, make_record("GOOD")])
        collector = AnnotationCollector(source)

        collected = collector.collect_all(SyncScope())

        assert [a.key for a in collected] == ["GOOD"]
        assert collector.skipped_annotations == 1
        assert collector.collection_failures == 0


class TestParseAnnotation:
    def test_parses_zotero_record(self):
        record = make_record(
            "K1",
            text="quoted",
            comment="mine",
            page_index=4,
            page_label="12",
            tags=("x", "y"),
            added="2024-01-02T03:04:05Z",
            modified="2024-02-03T04:05:06Z",
        )

        annotation = parse_annotation(record, "ITEM1", "ATT1")

        assert annotation.key == "K1"
        assert annotation.item_key == "ITEM1"
        assert annotation.attachment_key == "ATT1"
        assert annotation.text == "quoted"
        assert annotation.comment == "mine"
        assert annotation.page == 5
        assert annotation.page_label == "12"
        assert annotation.color == "#ffd400"
        assert annotation.tags == ("x", "y")
        assert annotation.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert annotation.modified_at == datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)

    def test_missing_position_means_no_page(self):
        annotation = parse_annotation(make_record("K1", page_index=None), "I", "A")
        assert annotation.page is None

    def test_empty_comment_becomes_none(self):
        annotation = parse_annotation(make_record("K1", comment=""), "I", "A")
        assert annotation.comment is None
