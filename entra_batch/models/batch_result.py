from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .row_result import RowResult, RowStatus

"""Aggregated batch result for one provisioning run."""

__all__ = [
    "BatchResult",
    "count_by_status",
]


def count_by_status(results: list[RowResult]) -> dict[RowStatus, int]:
    """Count results per status. Every status is present, zero when unused."""
    summary = {status: 0 for status in RowStatus}
    for r in results:
        summary[r.status] += 1
    return summary


@dataclass(frozen=True)
class BatchResult:
    """Results and summary metrics of a batch run.

    results is the ordered RowResult sequence (file order). skipped_rows counts
    rows rejected before processing (blank required field or duplicate key);
    those rows have no RowResult.
    """
    pipeline: str
    results: list[RowResult]
    skipped_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    log_path: Path | None = None
    summary: dict[RowStatus, int] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return self.summary.get(RowStatus.ERROR, 0) > 0

    @property
    def added_to_group(self) -> int:
        return sum(1 for r in self.results if r.added_to_group)
