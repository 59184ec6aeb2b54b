"""Utility functions and helpers for the Zotero → Readwise sync.

This package provides logging, progress tracking, retry and atomic file write
utilities that integrate with Hydra's logging setup and support unicode/emoji
for user-friendly terminal output.
"""

from .file_utils import atomic_write
from .logging import log_error, log_startup, log_summary_table
from .progress import ProgressBar
from .retry import RetryPolicy, retry_with_backoff

__all__ = [
    "atomic_write",
    "log_startup",
    "log_error",
    "log_summary_table",
    "ProgressBar",
    "RetryPolicy",
    "retry_with_backoff",
]
