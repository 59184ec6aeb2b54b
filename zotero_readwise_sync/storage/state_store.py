"""
Persisted sync state: last successful sync time and the Readwise id ledger.

This module defines the abstract StateStore interface used by the orchestrator
and a JSON-file implementation. The ledger maps Zotero annotation keys to
Readwise highlight ids and is the deduplication gate across runs: any key
present in it is never submitted again.

A missing or corrupt state file is treated as empty state. Any other read
failure (permissions, I/O errors) raises CriticalSyncError so a run never
proceeds on state it could not read.
"""

from abc import ABC, abstractmethod
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any

from zotero_readwise_sync.clients.exceptions import CriticalSyncError
from zotero_readwise_sync.domain.config import StateConfig
from zotero_readwise_sync.domain.models import format_timestamp, parse_timestamp
from zotero_readwise_sync.utils.file_utils import atomic_write
from zotero_readwise_sync.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Abstract interface for durable sync state.

    Implementations must survive process restarts and treat a missing or
    corrupt store as empty. ``save_mapping`` replaces the whole ledger;
    callers merge with the current content before saving.
    """

    @abstractmethod
    def get_last_sync_at(self) -> datetime | None:
        """Return the time of the last successful sync, or None."""
        pass

    @abstractmethod
    def set_last_sync_at(self, when: datetime) -> None:
        """Persist the time of the last successful sync."""
        pass

    @abstractmethod
    def get_mapping(self) -> dict[str, str]:
        """Return a copy of the annotation key → Readwise id ledger."""
        pass

    @abstractmethod
    def save_mapping(self, mapping: dict[str, str]) -> None:
        """Atomically replace the persisted ledger with ``mapping``."""
        pass


class JsonFileStateStore(StateStore):
    """State store backed by two JSON files in a state directory.

    Layout:
        {state_dir}/{sync_state_filename}: {"last_sync_at": "<ISO-8601>"}
        {state_dir}/{mapping_filename}:    {"<annotation key>": "<readwise id>"}

    Example:
        >>> store = JsonFileStateStore(StateConfig(state_dir="./data/state"))
        >>> mapping = store.get_mapping()
        >>> mapping["ABCD1234"] = "987654321"
        >>> store.save_mapping(mapping)
    """

    def __init__(self, config: StateConfig) -> None:
        self.config = config
        self.state_dir = Path(config.state_dir)
        self.sync_state_path = self.state_dir / config.sync_state_filename
        self.mapping_path = self.state_dir / config.mapping_filename

    def _read_json(self, path: Path) -> Any:
        """Read a JSON document, returning None when missing or corrupt."""
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"State file not found, treating as empty: {path}")
            return None
        except OSError as e:
            error_msg = f"Failed to read state file {path}"
            logger.error(f"{error_msg}: {e}")
            raise CriticalSyncError(error_msg, e) from e

        if not content.strip():
            return None
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt state file {path}, treating as empty: {e}")
            return None

    @retry_with_backoff(
        max_attempts=3,
        initial_delay=0.2,
        backoff_multiplier=2.0,
        max_delay=1.0,
        exceptions=(OSError,),
    )
    def _write_json(self, path: Path, data: Any) -> None:
        """Atomically write ``data`` as JSON, retrying transient OS errors."""
        with atomic_write(path) as handle:
            json.dump(data, handle, indent=2, sort_keys=True, ensure_ascii=False)
            handle.write("\n")

    def get_last_sync_at(self) -> datetime | None:
        data = self._read_json(self.sync_state_path)
        if not isinstance(data, dict):
            return None
        raw = data.get("last_sync_at")
        if not raw:
            return None
        try:
            return parse_timestamp(raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                f"Invalid last_sync_at '{raw}' in {self.sync_state_path}, "
                f"ignoring: {e}"
            )
            return None

    def set_last_sync_at(self, when: datetime) -> None:
        data = self._read_json(self.sync_state_path)
        if not isinstance(data, dict):
            data = {}
        data["last_sync_at"] = format_timestamp(when)
        self._write_json(self.sync_state_path, data)
        logger.debug(f"Saved last_sync_at={data['last_sync_at']}")

    def get_mapping(self) -> dict[str, str]:
        data = self._read_json(self.mapping_path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(
                f"Mapping file {self.mapping_path} does not contain a JSON "
                f"object, treating as empty"
            )
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def save_mapping(self, mapping: dict[str, str]) -> None:
        self._write_json(
            self.mapping_path, {str(k): str(v) for k, v in mapping.items()}
        )
        logger.debug(f"Saved mapping with {len(mapping)} entries")
