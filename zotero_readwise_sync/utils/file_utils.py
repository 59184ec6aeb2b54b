"""File utilities for persisted sync state.

This module provides a context manager for atomically replacing a file: content
is written to a temporary file in the same directory and moved over the target
only when writing succeeded, so readers never observe a half-written file.
"""

from collections.abc import Generator
from contextlib import contextmanager
import logging
import os
from pathlib import Path
import tempfile
from typing import IO

logger = logging.getLogger(__name__)


@contextmanager
def atomic_write(
    target: Path, encoding: str = "utf-8"
) -> Generator[IO[str], None, None]:
    """Context manager yielding a text handle whose content replaces ``target``.

    The temporary file is created next to the target so the final
    ``os.replace`` stays on one filesystem. If the block raises, the temporary
    file is removed and the target is left untouched. Cleanup errors are logged
    as warnings but do not raise, to avoid masking the original error.

    Args:
        target: Path of the file to replace.
        encoding: Text encoding for the written content.

    Yields:
        Writable text file handle.

    Example:
        >>> with atomic_write(Path("state/mapping.json")) as handle:
        ...     json.dump(mapping, handle)
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path_str = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
        logger.debug(f"Atomically replaced {target}")
    except BaseException:
        if temp_path.exists():
            try:
                os.unlink(temp_path)
            except OSError as unlink_error:
                logger.warning(
                    f"Failed to cleanup temporary file {temp_path}: "
                    f"{str(unlink_error)}"
                )
        raise
