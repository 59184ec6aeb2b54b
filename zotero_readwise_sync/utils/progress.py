"""Terminal progress display for collection and delivery.

Both the annotation collector and the highlight sender report progress
through ProgressBar, a thin tqdm wrapper. The same unicode check decides
whether log helpers print emoji or ASCII markers.
"""

import os
import sys
from typing import TextIO

from tqdm import tqdm

BAR_FORMAT = (
    "{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}{postfix}]"
)
UNICODE_ENCODINGS = frozenset({"utf-8", "utf8", "utf-16", "utf-32", "utf-8-sig"})


def supports_unicode(stream: TextIO | None = None) -> bool:
    """Return whether ``stream`` (stdout by default) can render emoji.

    FORCE_ASCII=1 always forces the ASCII rendition.
    """
    if os.environ.get("FORCE_ASCII") == "1":
        return False

    encoding = getattr(stream or sys.stdout, "encoding", None)
    return bool(encoding) and encoding.lower() in UNICODE_ENCODINGS


class ProgressBar:
    """Context manager drawing a tqdm bar on stderr.

    Args:
        total: Number of units the run will process
        desc: Label shown left of the bar
        unit: Unit label (e.g., "item", "highlight")
        disable: True to hide the bar, None to hide it when stderr is not a
            terminal

    Example:
        >>> with ProgressBar(total=250, desc="Sending highlights", unit="highlight") as pbar:
        ...     for batch in batches:
        ...         pbar.update(len(batch))
    """

    def __init__(
        self, total: int, desc: str, unit: str = "item", disable: bool | None = None
    ) -> None:
        self.total = total
        self.desc = desc
        self.unit = unit
        self.disable = disable
        self._bar: tqdm | None = None

    def __enter__(self) -> "ProgressBar":
        self._bar = tqdm(
            total=self.total,
            desc=self.desc,
            unit=self.unit,
            ncols=80,
            bar_format=BAR_FORMAT,
            ascii=not supports_unicode(sys.stderr),
            disable=self.disable,
            leave=False,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def update(self, n: int = 1) -> None:
        if self._bar is not None:
            self._bar.update(n)

    def set_postfix(self, postfix: dict) -> None:
        """Show ``key=value`` pairs after the bar, e.g. failed batch counts."""
        if self._bar is not None:
            self._bar.set_postfix(postfix, refresh=False)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
