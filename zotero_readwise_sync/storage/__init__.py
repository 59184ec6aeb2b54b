"""Persisted sync state (last sync time and the Readwise id ledger)."""

from .state_store import JsonFileStateStore, StateStore

__all__ = ["StateStore", "JsonFileStateStore"]
