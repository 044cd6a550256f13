# Shared pytest fixtures
from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from entra_batch.config.loader import ProvisionConfig
from entra_batch.directory.base import DirectoryUser, Invitation, RemoteError


class FakeDirectoryClient:
    """In-memory DirectoryClient recording every call."""

    def __init__(self) -> None:
        self.users: dict[str, DirectoryUser] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_lookup: set[str] = set()
        self.fail_create: set[str] = set()
        self.fail_invite: set[str] = set()
        self.fail_group = False
        self.closed = False
        self._next_id = 0

    def add_user(self, key: str, user_type: str = "Member", display_name: str | None = None) -> DirectoryUser:
        self._next_id += 1
        user = DirectoryUser(
            id=f"existing-{self._next_id}",
            display_name=display_name or key,
            user_principal_name=key,
            mail=key,
            user_type=user_type,
        )
        self.users[key.lower()] = user
        return user

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id-{self._next_id}"

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def find_user(self, key: str) -> DirectoryUser | None:
        self.calls.append(("find_user", key))
        if key.lower() in self.fail_lookup:
            raise RemoteError("Request_ResourceNotFound: lookup broke", status_code=500)
        return self.users.get(key.lower())

    def create_user(self, body: dict[str, Any]) -> DirectoryUser:
        self.calls.append(("create_user", body))
        upn = body["userPrincipalName"]
        if upn.lower() in self.fail_create:
            raise RemoteError("Request_BadRequest: password does not comply", status_code=400)
        return DirectoryUser(id=self._new_id(), display_name=body["displayName"], user_principal_name=upn)

    def invite_guest_user(self, email, display_name, redirect_url, message, send_message) -> Invitation:
        self.calls.append(("invite_guest_user", (email, display_name, redirect_url, message, send_message)))
        if email.lower() in self.fail_invite:
            raise RemoteError("BadRequest: invalid email", status_code=400)
        return Invitation(
            invited_user=DirectoryUser(id=self._new_id(), display_name=display_name, mail=email, user_type="Guest")
        )

    def add_user_to_group(self, group_id: str, user_id: str) -> None:
        self.calls.append(("add_user_to_group", (group_id, user_id)))
        if self.fail_group:
            raise RemoteError("Authorization_RequestDenied: insufficient privileges", status_code=403)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for var in ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "ENTRA_GROUP_ID"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def fake_client() -> FakeDirectoryClient:
    return FakeDirectoryClient()


@pytest.fixture()
def base_config() -> ProvisionConfig:
    return ProvisionConfig(csv_path="data/users.csv", tenant_id="contoso.onmicrosoft.com")


@pytest.fixture()
def sample_config_yaml() -> str:
    return """csv_path: ./data/users.csv
tenant_id: contoso.onmicrosoft.com
add_to_group_id: grp-default
skip_existing: false
dry_run: false
throttle_delay_seconds: 0
invite:
  send_invitation_message: false
  custom_message: Welcome aboard
  redirect_url: https://portal.contoso.com
create:
  domain_suffix: contoso.onmicrosoft.com
auth:
  method: client_secret
  client_id: 11111111-2222-3333-4444-555555555555
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "provision.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path):
    def _write(text: str, name: str = "users.csv") -> Path:
        p = temp_workdir / "data" / name
        p.write_text(text, encoding="utf-8")
        return p
    return _write
