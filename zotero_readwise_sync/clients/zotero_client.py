"""
Zotero API client wrapper for annotation retrieval.

This module provides a high-level interface to the Zotero API using PyZotero,
with domain-specific methods for resolving a sync scope to items, listing PDF
attachments and their annotations, and reading parent item metadata. All
methods translate PyZotero errors into the client exception hierarchy and log
with enough context to debug a failed sync.
"""

import logging
from typing import Any, cast

from pyzotero import zotero_errors
from pyzotero.zotero import Zotero

from zotero_readwise_sync.clients.annotation_source import AnnotationSource
from zotero_readwise_sync.clients.exceptions import (
    ZoteroAPIError,
    ZoteroAuthError,
    ZoteroClientError,
    ZoteroItemNotFoundError,
)
from zotero_readwise_sync.domain.config import ZoteroConfig
from zotero_readwise_sync.domain.models import (
    Attachment,
    Creator,
    DocumentMetadata,
    SyncScope,
)

logger = logging.getLogger(__name__)

NON_DOCUMENT_ITEM_TYPES = frozenset({"attachment", "note", "annotation"})


def _item_data(item: Any) -> dict[str, Any] | None:
    """Return the 'data' dict of an API item, or None for malformed items."""
    if not isinstance(item, dict):
        return None
    data = item.get("data", {})
    if not isinstance(data, dict):
        return None
    return cast(dict[str, Any], data)


class ZoteroClient(AnnotationSource):
    """Client for reading annotations from a Zotero library.

    This class wraps PyZotero's Zotero class to implement the AnnotationSource
    interface against the Zotero web API, or against the desktop local API
    when ``config.local`` is set.

    Example:
        >>> from zotero_readwise_sync.domain.config import ZoteroConfig
        >>> from zotero_readwise_sync.clients.zotero_client import ZoteroClient
        >>>
        >>> config = ZoteroConfig(
        ...     library_id="123456",
        ...     api_key="your_api_key_here"
        ... )
        >>> client = ZoteroClient(config)
        >>> keys = client.search(SyncScope(kind="library"))
    """

    def __init__(self, config: ZoteroConfig) -> None:
        """Initialize the Zotero client.

        Args:
            config: Zotero configuration containing library_id and api_key.
        """
        self.config = config
        if config.local:
            self._zotero = Zotero(
                config.library_id, config.library_type, local=True
            )
        else:
            self._zotero = Zotero(
                config.library_id, config.library_type, config.api_key
            )
        mode = "local API" if config.local else "web API"
        logger.info(
            f"Initialized ZoteroClient for {config.library_type} library "
            f"{config.library_id} ({mode})"
        )

    def _translate_error(self, e: Exception, action: str) -> ZoteroClientError:
        """Map a PyZotero exception to the client exception hierarchy."""
        if isinstance(e, zotero_errors.ResourceNotFoundError):
            error_msg = f"Not found while {action}"
            logger.error(f"{error_msg}: {e}")
            return ZoteroItemNotFoundError(error_msg, e)
        if isinstance(e, zotero_errors.UserNotAuthorisedError):
            error_msg = f"Authentication failed while {action}"
            logger.error(f"{error_msg}: {e}")
            return ZoteroAuthError(error_msg, e)
        if isinstance(e, zotero_errors.PyZoteroError):
            error_msg = f"API error while {action}"
            logger.error(f"{error_msg}: {e}")
            return ZoteroAPIError(error_msg, e)
        error_msg = f"Unexpected error while {action}"
        logger.error(f"{error_msg}: {e}", exc_info=True)
        return ZoteroAPIError(error_msg, e)

    @staticmethod
    def _document_keys(items: list[Any]) -> list[str]:
        """Keep keys of regular items, dropping attachments, notes and
        annotations."""
        keys = []
        for item in items:
            data = _item_data(item)
            if data is None:
                continue
            if data.get("itemType") in NON_DOCUMENT_ITEM_TYPES:
                continue
            key = item.get("key") or data.get("key")
            if key:
                keys.append(key)
        return keys

    def search(self, scope: SyncScope) -> list[str]:
        """Resolve a scope to the keys of its regular top-level items.

        Args:
            scope: Library, collection or explicit item list.

        Returns:
            Item keys in API order. For 'items' scope the given keys are
            returned unchanged.

        Raises:
            ZoteroItemNotFoundError: If the collection doesn't exist (404).
            ZoteroAPIError: If API communication fails.
            ZoteroAuthError: If authentication fails.
        """
        if scope.kind == "items":
            return list(scope.item_keys)

        action = f"resolving scope '{scope.describe()}'"
        try:
            if scope.kind == "collection":
                logger.debug(f"Fetching items of collection {scope.collection_key}")
                items = self._zotero.everything(
                    self._zotero.collection_items_top(scope.collection_key)
                )
            else:
                logger.debug("Fetching top-level items of the library")
                items = self._zotero.everything(self._zotero.top())
        except Exception as e:
            raise self._translate_error(e, action) from e

        keys = self._document_keys(items)
        logger.info(f"Resolved {scope.describe()} to {len(keys)} items")
        return keys

    def get_attachments(self, item_key: str) -> list[Attachment]:
        """Return the child attachments of an item.

        Raises:
            ZoteroItemNotFoundError: If the item doesn't exist (404).
            ZoteroAPIError: If API communication fails.
            ZoteroAuthError: If authentication fails.
        """
        try:
            children = self._zotero.children(item_key, itemType="attachment")
        except Exception as e:
            raise self._translate_error(
                e, f"fetching attachments of item_key={item_key}"
            ) from e

        attachments = []
        for child in children:
            data = _item_data(child)
            if data is None or data.get("itemType") != "attachment":
                continue
            attachments.append(
                Attachment(
                    key=child.get("key") or data.get("key", ""),
                    parent_key=item_key,
                    content_type=data.get("contentType") or "",
                    filename=data.get("filename") or "",
                    link_mode=data.get("linkMode") or "",
                )
            )
        logger.debug(f"Item {item_key} has {len(attachments)} attachments")
        return attachments

    def get_annotations(self, attachment_key: str) -> list[dict[str, Any]]:
        """Return raw annotation records (item 'data' dicts) of an attachment.

        Raises:
            ZoteroItemNotFoundError: If the attachment doesn't exist (404).
            ZoteroAPIError: If API communication fails.
            ZoteroAuthError: If authentication fails.
        """
        try:
            children = self._zotero.everything(
                self._zotero.children(attachment_key, itemType="annotation")
            )
        except Exception as e:
            raise self._translate_error(
                e, f"fetching annotations of attachment_key={attachment_key}"
            ) from e

        records = []
        for child in children:
            data = _item_data(child)
            if data is None or data.get("itemType") != "annotation":
                continue
            record = dict(data)
            record.setdefault("key", child.get("key"))
            records.append(record)
        logger.debug(
            f"Attachment {attachment_key} has {len(records)} annotations"
        )
        return records

    def get_document(self, item_key: str) -> DocumentMetadata:
        """Return title, creators and item type of a parent item.

        Raises:
            ZoteroItemNotFoundError: If the item doesn't exist (404).
            ZoteroAPIError: If API communication fails or the response is
                malformed.
            ZoteroAuthError: If authentication fails.
        """
        try:
            item = self._zotero.item(item_key)
        except Exception as e:
            raise self._translate_error(e, f"fetching item_key={item_key}") from e

        data = _item_data(item)
        if data is None:
            raise ZoteroAPIError(f"Invalid item structure for item_key={item_key}")

        creators = []
        for raw in data.get("creators", []):
            if not isinstance(raw, dict):
                continue
            creators.append(
                Creator(
                    first_name=raw.get("firstName", ""),
                    last_name=raw.get("lastName", ""),
                    name=raw.get("name", ""),
                    creator_type=raw.get("creatorType", "author"),
                )
            )

        return DocumentMetadata(
            key=item_key,
            title=data.get("title", ""),
            creators=tuple(creators),
            item_type=data.get("itemType", ""),
        )
