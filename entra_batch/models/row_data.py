from __future__ import annotations

from dataclasses import dataclass

"""RawRow model for the CSV provisioning batch.

RawRow represents a single data line of the input CSV after header
canonicalization, before any typed normalization runs.
"""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """One CSV data line, keyed by canonical column name.

    row_number is 1-based over data lines (header excluded), so it matches what
    an operator sees when counting rows under the header in a spreadsheet.
    """
    row_number: int
    values: dict[str, str]

    def get(self, column: str) -> str:
        """Return the trimmed value for column, or "" when the column is absent."""
        value = self.values.get(column)
        if value is None:
            return ""
        return value.strip()
