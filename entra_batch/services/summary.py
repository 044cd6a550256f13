from __future__ import annotations

from ..models.batch_result import BatchResult
from ..models.row_result import RowStatus

"""SUMMARY line rendering for a provisioning run.

Format:
SUMMARY pipeline={p} rows={n} created={c} invited={i} skipped_existing={s}
dry_run={d} error={e} skipped_rows={k} added_to_group={g} elapsed_sec={t}
"""

__all__ = [
    "render_summary_fields",
    "render_summary_line",
]


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: BatchResult) -> str:
    """Render the SUMMARY line for result.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> r = BatchResult(pipeline="invite", results=[], skipped_rows=1, start_time=t,
        ...                 end_time=t, elapsed_seconds=0.0,
        ...                 summary={s: 0 for s in RowStatus})
        >>> render_summary_line(r)  # doctest: +ELLIPSIS
        'SUMMARY pipeline=invite rows=0 created=0 invited=0 ... skipped_rows=1 added_to_group=0 elapsed_sec=0'
    """
    return f"SUMMARY {render_summary_fields(result)}"


def render_summary_fields(result: BatchResult) -> str:
    """The key=value part of the SUMMARY line (log_summary adds the label)."""
    s = result.summary
    return (
        f"pipeline={result.pipeline} "
        f"rows={len(result.results)} "
        f"created={s.get(RowStatus.CREATED, 0)} "
        f"invited={s.get(RowStatus.INVITED, 0)} "
        f"skipped_existing={s.get(RowStatus.SKIPPED_EXISTING, 0)} "
        f"dry_run={s.get(RowStatus.DRY_RUN, 0)} "
        f"error={s.get(RowStatus.ERROR, 0)} "
        f"skipped_rows={result.skipped_rows} "
        f"added_to_group={result.added_to_group} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
