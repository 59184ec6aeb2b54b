"""Domain models and configuration schemas

This module provides the domain layer for the Zotero → Readwise sync,
including type-safe configuration schemas and domain models. The annotation
mapper lives in ``domain.mapper``.
"""

from .config import (
    AppConfig,
    ConfigError,
    ReadwiseConfig,
    RetryConfig,
    StateConfig,
    SyncConfig,
    ZoteroConfig,
    register_configs,
)
from .models import (
    CollectedAnnotation,
    DocumentMetadata,
    MappedHighlight,
    SendResult,
    SyncPhase,
    SyncRequest,
    SyncScope,
    SyncSummary,
)

__all__ = [
    "ZoteroConfig",
    "RetryConfig",
    "ReadwiseConfig",
    "SyncConfig",
    "StateConfig",
    "AppConfig",
    "register_configs",
    "ConfigError",
    "CollectedAnnotation",
    "DocumentMetadata",
    "MappedHighlight",
    "SendResult",
    "SyncPhase",
    "SyncRequest",
    "SyncScope",
    "SyncSummary",
]
