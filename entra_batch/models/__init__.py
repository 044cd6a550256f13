"""Domain models for the Entra batch provisioning tool.

This package contains the row, entry and result models shared by the CSV
loader, the row processor and the batch runner.
"""

from .batch_result import BatchResult, count_by_status
from .entries import InvitationEntry, MemberCreationEntry
from .row_data import RawRow
from .row_result import RowResult, RowStatus

__all__ = [
    # Input models
    "RawRow",
    "InvitationEntry",
    "MemberCreationEntry",
    # Result models
    "RowResult",
    "RowStatus",
    "BatchResult",
    "count_by_status",
]
