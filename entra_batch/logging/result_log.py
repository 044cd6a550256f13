from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from ..models.row_result import RowResult

"""Result log (CSV) for a provisioning run.

- One row per RowResult, fixed column set per pipeline (no extra keys)
- Default path `logs/<pipeline>-results-YYYYMMDD-HHMMSS.csv` (UTC), decided on first access
- Buffered in memory and written once at the end of the run (no append)
"""

__all__ = [
    "INVITE_LOG_COLUMNS",
    "CREATE_LOG_COLUMNS",
    "ResultLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

INVITE_LOG_COLUMNS = ["Email", "DisplayName", "Status", "UserId", "AddedToGroup", "Error"]
CREATE_LOG_COLUMNS = [
    "UserPrincipalName",
    "DisplayName",
    "Status",
    "UserId",
    "AddedToGroup",
    "TempPassword",
    "Error",
]


class ResultLogBuffer:
    """In-memory buffer of RowResults. flush() writes the CSV in one go.

    シリアル実行前提のためスレッド安全性は不要。
    """

    def __init__(self, pipeline: str, path: Path | None = None) -> None:
        if pipeline not in ("invite", "create"):
            raise ValueError(f"unknown pipeline: {pipeline}")
        self.pipeline = pipeline
        self._records: list[RowResult] = []
        self._file_path: Path | None = Path(path) if path is not None else None

    @property
    def columns(self) -> list[str]:
        return INVITE_LOG_COLUMNS if self.pipeline == "invite" else CREATE_LOG_COLUMNS

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = LOGS_DIR / f"{self.pipeline}-results-{stamp}.csv"
        return self._file_path

    def append(self, record: RowResult) -> None:
        self._records.append(record)

    def _to_row(self, r: RowResult) -> dict[str, str]:
        row = {
            self.columns[0]: r.identifier,
            "DisplayName": r.display_name,
            "Status": r.status.value,
            "UserId": r.remote_id or "",
            "AddedToGroup": str(r.added_to_group),
            "Error": r.error_message or "",
        }
        if self.pipeline == "create":
            row["TempPassword"] = r.generated_secret or ""
        return row

    def flush(self) -> Path:
        """Write every buffered record (header only when empty) and return the path."""
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        df = pd.DataFrame([self._to_row(r) for r in self._records], columns=self.columns)
        df.to_csv(fp, index=False, encoding="utf-8")
        self._records.clear()
        return fp
