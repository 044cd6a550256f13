from __future__ import annotations

from ..config.loader import ProvisionConfig
from ..models.entries import InvitationEntry, MemberCreationEntry
from ..models.row_data import RawRow

"""Typed normalization of RawRow into pipeline entries.

All "missing or blank column" handling lives here; the row processor only ever
sees fully defaulted entries.
"""

__all__ = [
    "ValidationError",
    "RowValidationError",
    "DuplicateRowError",
    "parse_flag",
    "normalize_invitation",
    "normalize_member",
]

TRUE_TOKENS = frozenset({"y", "yes", "true", "1"})
FALSE_TOKENS = frozenset({"n", "no", "false", "0"})

DEFAULT_USAGE_LOCATION = "US"


class ValidationError(Exception):
    """Row-scoped rejection before any remote call."""

    def __init__(self, row_number: int, message: str) -> None:
        super().__init__(f"row {row_number}: {message}")
        self.row_number = row_number


class RowValidationError(ValidationError):
    """A required field is blank or a value cannot be interpreted."""


class DuplicateRowError(ValidationError):
    """The identifying key already appeared earlier in this run."""


def parse_flag(value: str) -> bool | None:
    """Parse a Y/N style column. Blank -> None, unknown token -> ValueError."""
    token = value.strip().lower()
    if token == "":
        return None
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise ValueError(f"unrecognized flag value: {value!r}")


def _optional(row: RawRow, column: str) -> str | None:
    return row.get(column) or None


def normalize_invitation(row: RawRow, cfg: ProvisionConfig) -> InvitationEntry:
    email = row.get("Email")
    if not email:
        raise RowValidationError(row.row_number, "Email is blank")
    name = _optional(row, "Name")
    display_name = row.get("DisplayName") or name or email
    return InvitationEntry(
        email=email,
        display_name=display_name,
        name=name,
        message=_optional(row, "Message") or cfg.custom_message,
        redirect_url=_optional(row, "RedirectUrl") or cfg.redirect_url,
        group_id=_optional(row, "GroupId"),
    )


def normalize_member(row: RawRow, cfg: ProvisionConfig) -> MemberCreationEntry:
    upn = row.get("UserPrincipalName")
    display_name = row.get("DisplayName")
    missing = [
        col for col, val in (("UserPrincipalName", upn), ("DisplayName", display_name)) if not val
    ]
    if missing:
        raise RowValidationError(row.row_number, f"required fields blank: {missing}")

    if "@" not in upn and cfg.domain_suffix:
        upn = f"{upn}@{cfg.domain_suffix.lstrip('@')}"

    try:
        force_change = parse_flag(row.get("ForceChangePassword"))
        enabled = parse_flag(row.get("AccountEnabled"))
    except ValueError as e:
        raise RowValidationError(row.row_number, str(e)) from e

    return MemberCreationEntry(
        user_principal_name=upn,
        display_name=display_name,
        mail_nickname=row.get("MailNickname") or upn.split("@", 1)[0],
        # パスワードは前後空白も意味を持つため strip しない
        password=row.values.get("Password") or None,
        given_name=_optional(row, "GivenName"),
        surname=_optional(row, "Surname"),
        usage_location=row.get("UsageLocation") or DEFAULT_USAGE_LOCATION,
        job_title=_optional(row, "JobTitle"),
        department=_optional(row, "Department"),
        force_change_password=force_change,
        account_enabled=True if enabled is None else enabled,
        group_id=_optional(row, "GroupId"),
    )
