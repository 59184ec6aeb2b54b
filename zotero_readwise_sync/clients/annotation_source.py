"""
Abstract base class for annotation source implementations.

This module defines the query surface the collector and mapper read from.
The interface is pull-based: resolve a scope to parent item keys, list each
item's attachments, list each attachment's annotations, and look up parent
item metadata by key.

Example workflow:
    # 1. item_keys = source.search(scope)
    # 2. attachments = source.get_attachments(item_key)
    # 3. records = source.get_annotations(attachment.key)
    # 4. document = source.get_document(item_key)
"""

from abc import ABC, abstractmethod
from typing import Any

from ..domain.models import Attachment, DocumentMetadata, SyncScope


class AnnotationSource(ABC):
    """Abstract base class for libraries that annotations are read from.

    Raw annotation records use the Zotero API item ``data`` layout (keys such
    as ``annotationType``, ``annotationText``, ``annotationComment``,
    ``annotationPosition``, ``tags``, ``dateAdded``, ``dateModified``).
    """

    @abstractmethod
    def search(self, scope: SyncScope) -> list[str]:
        """Resolve a scope to the keys of its regular top-level items.

        Attachments and standalone notes are excluded.

        Raises:
            ZoteroClientError: If the scope cannot be resolved.
        """
        pass

    @abstractmethod
    def get_attachments(self, item_key: str) -> list[Attachment]:
        """Return the child attachments of an item.

        Raises:
            ZoteroClientError: If the attachments cannot be fetched.
        """
        pass

    @abstractmethod
    def get_annotations(self, attachment_key: str) -> list[dict[str, Any]]:
        """Return raw annotation records of an attachment.

        Raises:
            ZoteroClientError: If the annotations cannot be fetched.
        """
        pass

    @abstractmethod
    def get_document(self, item_key: str) -> DocumentMetadata:
        """Return parent item metadata.

        Raises:
            ZoteroItemNotFoundError: If the item does not exist.
            ZoteroClientError: If the lookup fails.
        """
        pass
