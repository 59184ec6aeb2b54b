"""
Zotero → Readwise Highlight Sync

One-way sync of PDF highlights and notes from a Zotero library to Readwise,
deduplicated across runs through a persisted annotation → highlight id ledger.
"""

__version__ = "0.1.0"
