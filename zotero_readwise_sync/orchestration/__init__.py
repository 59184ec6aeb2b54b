"""Sync orchestration and workflow coordination"""

from zotero_readwise_sync.orchestration.collector import AnnotationCollector
from zotero_readwise_sync.orchestration.orchestrator import SyncOrchestrator
from zotero_readwise_sync.orchestration.sender import HighlightSender

__all__ = ["AnnotationCollector", "HighlightSender", "SyncOrchestrator"]
