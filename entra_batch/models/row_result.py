from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""RowResult model and RowStatus enum.

A RowResult is the terminal record of one processed CSV row. It is created once
by the row processor and updated at most once more by the group-add follow-up.
"""

__all__ = [
    "RowStatus",
    "RowResult",
]


class RowStatus(Enum):
    """Terminal status of a processed row.

    State transitions: start → validated → (skip | create/invite) → terminal

    - CREATED: member user created
    - INVITED: guest invitation sent
    - SKIPPED_EXISTING: user already in the directory, nothing created
    - DRY_RUN: intended action computed, no mutating call made
    - ERROR: the create/invite call (or the lookup before it) failed
    """
    CREATED = "Created"
    INVITED = "Invited"
    SKIPPED_EXISTING = "SkippedExisting"
    DRY_RUN = "DryRun"
    ERROR = "Error"


@dataclass
class RowResult:
    identifier: str
    display_name: str
    status: RowStatus
    remote_id: str | None = None
    added_to_group: bool = False
    generated_secret: str | None = None  # create のみ
    error_message: str | None = None

    def record_group_add(self, added: bool, error_message: str | None = None) -> None:
        """Apply the group-add outcome without touching the primary status."""
        self.added_to_group = added
        if error_message:
            self.error_message = error_message
