from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Row progress bar (tqdm), shown only when stdout is a terminal.

Redirected output (CI, `> run.txt`) gets no bar so the labeled log lines
stay line-oriented.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]

BAR_WIDTH = 80


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """One bar over the CSV rows of a run; postfix shows ok/error/skipped."""

    def __init__(self, total_rows: int, *, description: str = "rows") -> None:
        self.total_rows = total_rows
        self.current_row = 0
        self.enabled = is_tty_enabled()
        self.pbar: Any = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                ncols=BAR_WIDTH,
                ascii=True,
            )

    def advance(self, **postfix: Any) -> None:
        self.current_row += 1
        if self.pbar is None:
            return
        if postfix:
            self.pbar.set_postfix(postfix, refresh=False)
        self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
