from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from ..models.row_data import RawRow

"""CSV loader for the provisioning pipelines.

- Header row is required; column names are matched case-insensitively and
  rewritten to their canonical spelling (e.g. "email" -> "Email").
- Values are read as plain strings, no type coercion, no NaN conversion.
- Unknown extra columns are kept on the RawRow and simply never read.
"""

__all__ = [
    "InputError",
    "INVITATION_COLUMNS",
    "MEMBER_COLUMNS",
    "INVITATION_REQUIRED",
    "MEMBER_REQUIRED",
    "load_rows",
]


class InputError(Exception):
    """Raised when the input CSV cannot be used at all (fatal for the run)."""


INVITATION_COLUMNS = (
    "Email",
    "Name",
    "DisplayName",
    "Message",
    "RedirectUrl",
    "GroupId",
)
INVITATION_REQUIRED = ("Email",)

MEMBER_COLUMNS = (
    "UserPrincipalName",
    "DisplayName",
    "MailNickname",
    "Password",
    "GivenName",
    "Surname",
    "UsageLocation",
    "JobTitle",
    "Department",
    "ForceChangePassword",
    "AccountEnabled",
    "GroupId",
)
MEMBER_REQUIRED = ("UserPrincipalName", "DisplayName")


def _canonical_header(columns: Iterable[str], known: Iterable[str]) -> list[str]:
    lookup = {k.lower(): k for k in known}
    out: list[str] = []
    for c in columns:
        name = str(c).strip()
        out.append(lookup.get(name.lower(), name))
    return out


def load_rows(
    path: Path,
    required_columns: Iterable[str],
    known_columns: Iterable[str] | None = None,
) -> list[RawRow]:
    """Read path into RawRow records in file order.

    Parameters
    ----------
    path: input CSV (UTF-8, BOM tolerated)
    required_columns: columns that must be present in the header
    known_columns: canonical column spellings (defaults to required_columns)

    Raises
    ------
    InputError: file missing, empty, or required columns absent
    """
    path = Path(path)
    required = list(required_columns)
    known = list(known_columns) if known_columns is not None else required
    if not path.exists():
        raise InputError(f"CSV file not found: {path}")
    if not path.is_file():
        raise InputError(f"CSV path is not a file: {path}")

    try:
        df = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise InputError(f"CSV file is empty: {path}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise InputError(f"CSV file could not be parsed: {path}: {e}") from e

    columns = _canonical_header(df.columns, known)
    # "Email,email" のような大文字小文字違いの重複列は後勝ちで値が消えるため拒否
    duplicated = sorted({c for c in columns if columns.count(c) > 1})
    if duplicated:
        raise InputError(f"CSV file has duplicate columns: {duplicated}")
    missing = [c for c in required if c not in columns]
    if missing:
        raise InputError(f"CSV file missing required columns: {missing}")
    df.columns = columns

    rows: list[RawRow] = []
    for idx, raw in enumerate(df.to_dict(orient="records"), start=1):
        values = {str(k): ("" if v is None else str(v)) for k, v in raw.items()}
        # ",,,," のような空行はスキップ
        if all(v.strip() == "" for v in values.values()):
            continue
        rows.append(RawRow(row_number=idx, values=values))
    if not rows:
        raise InputError(f"CSV file has no data rows: {path}")
    return rows
