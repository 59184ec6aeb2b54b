"""Tests for the PyZotero-backed annotation source."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from pyzotero import zotero_errors

from zotero_readwise_sync.clients.exceptions import (
    ZoteroAPIError,
    ZoteroAuthError,
    ZoteroItemNotFoundError,
)
from zotero_readwise_sync.clients.zotero_client import ZoteroClient
from zotero_readwise_sync.domain.config import ZoteroConfig
from zotero_readwise_sync.domain.models import SyncScope


def _item(key: str, item_type: str, **data) -> dict:
    return {"key": key, "data": {"key": key, "itemType": item_type, **data}}


@pytest.fixture
def zot():
    with patch("zotero_readwise_sync.clients.zotero_client.Zotero") as zotero_cls:
        instance = MagicMock()
        instance.everything.side_effect = lambda result: result
        zotero_cls.return_value = instance
        yield zotero_cls


@pytest.fixture
def client(zot) -> ZoteroClient:
    return ZoteroClient(ZoteroConfig(library_id="123", api_key="key"))


class TestInit:
    def test_web_api(self, zot):
        ZoteroClient(ZoteroConfig(library_id="123", api_key="key"))
        zot.assert_called_once_with("123", "user", "key")

    def test_local_api(self, zot):
        ZoteroClient(ZoteroConfig(library_id="0", local=True))
        zot.assert_called_once_with("0", "user", local=True)


class TestSearch:
    def test_library_scope_drops_attachments_and_notes(self, client, zot):
        zot.return_value.top.return_value = [
            _item("A", "journalArticle"),
            _item("B", "attachment"),
            _item("C", "note"),
            _item("D", "book"),
        ]

        assert client.search(SyncScope()) == ["A", "D"]

    def test_collection_scope(self, client, zot):
        zot.return_value.collection_items_top.return_value = [_item("A", "book")]

        assert client.search(SyncScope(kind="collection", collection_key="COL1")) == ["A"]
        zot.return_value.collection_items_top.assert_called_once_with("COL1")

    def test_items_scope_makes_no_request(self, client, zot):
        scope = SyncScope(kind="items", item_keys=("X", "Y"))
        assert client.search(scope) == ["X", "Y"]
        zot.return_value.top.assert_not_called()

    def test_missing_collection(self, client, zot):
        zot.return_value.collection_items_top.side_effect = (
            zotero_errors.ResourceNotFoundError("404")
        )
        with pytest.raises(ZoteroItemNotFoundError):
            client.search(SyncScope(kind="collection", collection_key="NOPE"))

    def test_auth_failure(self, client, zot):
        zot.return_value.top.side_effect = zotero_errors.UserNotAuthorisedError("403")
        with pytest.raises(ZoteroAuthError):
            client.search(SyncScope())


class TestChildren:
    def test_get_attachments(self, client, zot):
        zot.return_value.children.return_value = [
            _item("ATT1", "attachment", contentType="application/pdf", filename="a.pdf"),
            _item("N1", "note"),
        ]

        attachments = client.get_attachments("ITEM1")

        assert [a.key for a in attachments] == ["ATT1"]
        assert attachments[0].is_pdf
        assert attachments[0].parent_key == "ITEM1"
        zot.return_value.children.assert_called_once_with("ITEM1", itemType="attachment")

    def test_get_annotations_returns_data_dicts(self, client, zot):
        zot.return_value.children.return_value = [
            _item("K1", "annotation", annotationType="highlight"),
        ]

        records = client.get_annotations("ATT1")

        assert records == [{"key": "K1", "itemType": "annotation", "annotationType": "highlight"}]

    def test_api_error_is_translated(self, client, zot):
        zot.return_value.children.side_effect = zotero_errors.HTTPError("500")
        with pytest.raises(ZoteroAPIError):
            client.get_attachments("ITEM1")


class TestGetDocument:
    def test_reads_title_creators_and_type(self, client, zot):
        zot.return_value.item.return_value = _item(
            "ITEM1",
            "book",
            title="Dune",
            creators=[
                {"creatorType": "author", "firstName": "Frank", "lastName": "Herbert"},
                {"creatorType": "editor", "name": "Ace Books"},
            ],
        )

        document = client.get_document("ITEM1")

        assert document.title == "Dune"
        assert document.item_type == "book"
        assert [c.display_name for c in document.creators] == ["Frank Herbert", "Ace Books"]

    def test_not_found(self, client, zot):
        zot.return_value.item.side_effect = zotero_errors.ResourceNotFoundError("404")
        with pytest.raises(ZoteroItemNotFoundError):
            client.get_document("GONE")

    def test_malformed_item(self, client, zot):
        zot.return_value.item.return_value = "garbage"
        with pytest.raises(ZoteroAPIError):
            client.get_document("ITEM1")
