"""Command-line interface components for the Zotero → Readwise sync.

This package provides command implementations that handle the dry-run and
sync workflows. Commands are called from the main entry point after
configuration validation and client initialization.
"""

from .commands import dry_run_command, sync_command

__all__ = ["dry_run_command", "sync_command"]
