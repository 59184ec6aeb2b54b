"""External API clients (Zotero, Readwise).

This module provides the annotation source interface with its PyZotero-backed
implementation, the Readwise highlights API client, and the custom exception
classes used across the sync.
"""

from .annotation_source import AnnotationSource
from .exceptions import (
    CollectionError,
    CriticalSyncError,
    DeliveryError,
    MappingError,
    ReadwiseAPIError,
    ReadwiseAuthError,
    ReadwiseClientError,
    ReadwiseRateLimitError,
    SyncError,
    ZoteroAPIError,
    ZoteroAuthError,
    ZoteroClientError,
    ZoteroItemNotFoundError,
)
from .readwise_client import ReadwiseClient
from .zotero_client import ZoteroClient

__all__ = [
    "AnnotationSource",
    "ZoteroClient",
    "ZoteroClientError",
    "ZoteroAPIError",
    "ZoteroAuthError",
    "ZoteroItemNotFoundError",
    "ReadwiseClient",
    "ReadwiseClientError",
    "ReadwiseAPIError",
    "ReadwiseAuthError",
    "ReadwiseRateLimitError",
    "SyncError",
    "CollectionError",
    "MappingError",
    "DeliveryError",
    "CriticalSyncError",
]
