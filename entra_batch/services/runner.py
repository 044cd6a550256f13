from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import ProvisionConfig
from ..csvfile.reader import (
    INVITATION_COLUMNS,
    INVITATION_REQUIRED,
    MEMBER_COLUMNS,
    MEMBER_REQUIRED,
    load_rows,
)
from ..directory.base import DirectoryClient
from ..logging.result_log import ResultLogBuffer
from ..models.batch_result import BatchResult, count_by_status
from ..models.row_data import RawRow
from ..models.row_result import RowResult, RowStatus
from .normalize import ValidationError
from .processor import processor_for
from .progress import ProgressTracker

"""Batch runner: sequences the row processor over every CSV row.

- strictly sequential, file order, no short-circuit on row errors
- optional fixed delay between rows (client-side rate limiting)
- result log written once at the end
"""

__all__ = [
    "load_input",
    "run_batch",
]

logger = logging.getLogger(__name__)


def load_input(pipeline: str, path: Path) -> list[RawRow]:
    """Load the CSV for pipeline. Raises InputError (fatal) on unusable input."""
    if pipeline == "invite":
        return load_rows(path, INVITATION_REQUIRED, INVITATION_COLUMNS)
    if pipeline == "create":
        return load_rows(path, MEMBER_REQUIRED, MEMBER_COLUMNS)
    raise ValueError(f"unknown pipeline: {pipeline}")


def run_batch(
    rows: list[RawRow],
    cfg: ProvisionConfig,
    client: DirectoryClient,
    pipeline: str,
) -> BatchResult:
    """Process rows in order and write the result log.

    Args:
        rows: RawRows from load_input (file order)
        cfg: resolved config (skip_existing / dry_run / throttle / group ...)
        client: directory session, owned by the caller
        pipeline: "invite" or "create"

    Returns:
        BatchResult with the ordered RowResults and status counts
    """
    start_time = datetime.now(UTC)
    processor = processor_for(pipeline, client, cfg)
    result_log = ResultLogBuffer(pipeline, Path(cfg.log_path) if cfg.log_path else None)
    results: list[RowResult] = []
    skipped_rows = 0
    error_count = 0
    delay = cfg.throttle_delay_seconds

    if cfg.dry_run:
        logger.info("dry run: no users will be created, invited or added to groups")

    try:
        with ProgressTracker(len(rows), description=pipeline) as progress:
            for index, row in enumerate(rows):
                try:
                    row_result = processor.process(row)
                except ValidationError as e:
                    skipped_rows += 1
                    logger.warning(str(e))
                else:
                    results.append(row_result)
                    result_log.append(row_result)
                    if row_result.status is RowStatus.ERROR:
                        error_count += 1

                progress.advance(ok=len(results) - error_count, error=error_count, skipped=skipped_rows)
                # 最終行の後は待たない
                if delay > 0 and index < len(rows) - 1:
                    time.sleep(delay)
    finally:
        # 中断時も作成済みユーザー (一時パスワード含む) を残す
        log_path = result_log.flush()
    end_time = datetime.now(UTC)
    return BatchResult(
        pipeline=pipeline,
        results=results,
        skipped_rows=skipped_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        log_path=log_path,
        summary=count_by_status(results),
    )
