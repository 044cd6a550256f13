from __future__ import annotations

import json
import logging
from typing import Any

from ..config.loader import ProvisionConfig
from ..directory.base import DirectoryClient, DirectoryUser, RemoteError
from ..models.entries import InvitationEntry, MemberCreationEntry
from ..models.row_data import RawRow
from ..models.row_result import RowResult, RowStatus
from .normalize import DuplicateRowError, normalize_invitation, normalize_member
from .password import generate_password

"""Row processor: one CSV row -> at most one RowResult.

Per row: start -> validated -> (skip path | create/invite path) -> terminal

1. normalize + duplicate gate   (ValidationError: no RowResult, caller warns)
2. existence check              (only when skip_existing)
3. create / invite              (or DryRun: no mutating call)
4. group-add follow-up          (never changes the primary status)

RemoteError from the lookup or the create/invite call yields status Error and
processing continues with the next row.
"""

__all__ = [
    "RowProcessor",
    "InvitationProcessor",
    "MemberCreationProcessor",
    "resolve_force_change_password",
    "processor_for",
]

logger = logging.getLogger(__name__)


def resolve_force_change_password(value: bool | None) -> bool:
    """Explicit Y/N wins; unset always means "force change" (supplied or generated)."""
    return True if value is None else value


class RowProcessor:
    """Shared row state machine. Subclasses provide normalize / create-or-invite."""

    pipeline = ""

    def __init__(self, client: DirectoryClient, cfg: ProvisionConfig) -> None:
        self.client = client
        self.cfg = cfg
        self._seen: set[str] = set()

    # -- hooks ---------------------------------------------------------------

    def normalize(self, row: RawRow) -> InvitationEntry | MemberCreationEntry:
        raise NotImplementedError

    def matches_existing(self, user: DirectoryUser) -> bool:
        return True

    def identifier(self, entry) -> str:
        raise NotImplementedError

    def act(self, entry) -> RowResult:
        raise NotImplementedError

    def request_preview(self, entry) -> dict[str, Any]:
        """Request body the mutating call would send, secrets masked."""
        raise NotImplementedError

    # -- state machine -------------------------------------------------------

    def process(self, row: RawRow) -> RowResult:
        """Process one row.

        Raises:
            ValidationError: blank required field or duplicate key (no RowResult)
        """
        entry = self.normalize(row)
        if entry.key in self._seen:
            raise DuplicateRowError(row.row_number, f"duplicate {self.identifier(entry)} skipped")
        self._seen.add(entry.key)

        if self.cfg.skip_existing:
            try:
                existing = self.client.find_user(self.identifier(entry))
            except RemoteError as e:
                if self.cfg.dry_run:
                    logger.warning(f"[dry-run] lookup failed for {self.identifier(entry)}: {e.message}")
                    return self._dry_run(entry, "would continue after failed lookup")
                logger.error(f"lookup failed for {self.identifier(entry)}: {e.message}")
                return self._result(entry, RowStatus.ERROR, error_message=f"lookup failed: {e.message}")
            if existing is not None:
                if self.matches_existing(existing):
                    if self.cfg.dry_run:
                        return self._dry_run(entry, f"would skip existing user ({existing.id})")
                    return self._skip_existing(entry, existing)
                logger.warning(
                    f"{self.identifier(entry)} exists as {existing.user_type or 'unknown'} user; proceeding"
                )

        if self.cfg.dry_run:
            return self._dry_run(entry, None)

        result = self.act(entry)
        if result.status is not RowStatus.ERROR:
            self._group_add(entry, result)
        return result

    def _result(self, entry, status: RowStatus, **kwargs) -> RowResult:
        return RowResult(
            identifier=self.identifier(entry),
            display_name=entry.display_name,
            status=status,
            **kwargs,
        )

    def _skip_existing(self, entry, existing: DirectoryUser) -> RowResult:
        logger.warning(f"{self.identifier(entry)} already exists ({existing.id}); skipped")
        result = RowResult(
            identifier=self.identifier(entry),
            display_name=existing.display_name or entry.display_name,
            status=RowStatus.SKIPPED_EXISTING,
            remote_id=existing.id,
        )
        self._group_add(entry, result)
        return result

    def _dry_run(self, entry, note: str | None) -> RowResult:
        group_id = self.target_group(entry)
        msg = f"[dry-run] {self.identifier(entry)}: {note or 'would ' + self.pipeline}"
        if group_id:
            msg += f" and add to group {group_id}"
        logger.info(msg)
        logger.info(
            f"[dry-run] {self.identifier(entry)}: request "
            f"{json.dumps(self.request_preview(entry), ensure_ascii=False, sort_keys=True)}"
        )
        return self._result(entry, RowStatus.DRY_RUN)

    def target_group(self, entry) -> str | None:
        return entry.group_id or self.cfg.add_to_group_id

    def _group_add(self, entry, result: RowResult) -> None:
        group_id = self.target_group(entry)
        if not group_id or not result.remote_id:
            return
        try:
            self.client.add_user_to_group(group_id, result.remote_id)
        except RemoteError as e:
            logger.error(f"group add failed for {self.identifier(entry)} -> {group_id}: {e.message}")
            result.record_group_add(False, f"group add failed: {e.message}")
            return
        logger.info(f"added {self.identifier(entry)} to group {group_id}")
        result.record_group_add(True)


class InvitationProcessor(RowProcessor):
    pipeline = "invite"

    def normalize(self, row: RawRow) -> InvitationEntry:
        return normalize_invitation(row, self.cfg)

    def matches_existing(self, user: DirectoryUser) -> bool:
        return user.is_guest

    def identifier(self, entry: InvitationEntry) -> str:
        return entry.email

    def request_preview(self, entry: InvitationEntry) -> dict[str, Any]:
        return entry.to_request_body(self.cfg.send_invitation_message)

    def act(self, entry: InvitationEntry) -> RowResult:
        try:
            invitation = self.client.invite_guest_user(
                entry.email,
                entry.display_name,
                entry.redirect_url,
                entry.message,
                self.cfg.send_invitation_message,
            )
        except RemoteError as e:
            logger.error(f"invite failed for {entry.email}: {e.message}")
            return self._result(entry, RowStatus.ERROR, error_message=e.message)
        user_id = invitation.invited_user.id
        logger.info(f"invited {entry.email} ({user_id})")
        return self._result(entry, RowStatus.INVITED, remote_id=user_id)


class MemberCreationProcessor(RowProcessor):
    pipeline = "create"

    def normalize(self, row: RawRow) -> MemberCreationEntry:
        return normalize_member(row, self.cfg)

    def identifier(self, entry: MemberCreationEntry) -> str:
        return entry.user_principal_name

    def request_preview(self, entry: MemberCreationEntry) -> dict[str, Any]:
        # dry run ではパスワードを生成しない (出所のみ表示)
        masked = "<supplied>" if entry.password else "<generated>"
        return entry.to_request_body(masked, resolve_force_change_password(entry.force_change_password))

    def act(self, entry: MemberCreationEntry) -> RowResult:
        secret = None
        password = entry.password
        if not password:
            password = secret = generate_password()
        force = resolve_force_change_password(entry.force_change_password)
        body = entry.to_request_body(password, force)
        try:
            user = self.client.create_user(body)
        except RemoteError as e:
            logger.error(f"create failed for {entry.user_principal_name}: {e.message}")
            return self._result(entry, RowStatus.ERROR, error_message=e.message)
        logger.info(f"created {entry.user_principal_name} ({user.id})")
        return self._result(entry, RowStatus.CREATED, remote_id=user.id, generated_secret=secret)


def processor_for(pipeline: str, client: DirectoryClient, cfg: ProvisionConfig) -> RowProcessor:
    if pipeline == "invite":
        return InvitationProcessor(client, cfg)
    if pipeline == "create":
        return MemberCreationProcessor(client, cfg)
    raise ValueError(f"unknown pipeline: {pipeline}")
