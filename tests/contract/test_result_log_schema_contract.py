from __future__ import annotations

import csv
from dataclasses import replace
from pathlib import Path

from entra_batch.logging.result_log import CREATE_LOG_COLUMNS, INVITE_LOG_COLUMNS
from entra_batch.services.runner import load_input, run_batch

"""Result log contract: fixed header per pipeline, one line per RowResult, no extra keys."""

VALID_STATUSES = {"Created", "Invited", "SkippedExisting", "DryRun", "Error"}


def _read(path: Path) -> tuple[list[str], list[dict[str, str]]]:
    with path.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        return list(reader.fieldnames or []), list(reader)


def test_invite_log_schema(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\n\nb@x.com\na@x.com\n")
    fake_client.fail_invite.add("b@x.com")
    cfg = replace(base_config, add_to_group_id="grp-1")
    result = run_batch(load_input("invite", path), cfg, fake_client, "invite")

    header, rows = _read(result.log_path)
    assert header == INVITE_LOG_COLUMNS
    assert len(rows) == len(result.results) == 2
    for row in rows:
        assert set(row) == set(INVITE_LOG_COLUMNS)
        assert row["Status"] in VALID_STATUSES
        assert row["AddedToGroup"] in {"True", "False"}
    assert rows[0]["AddedToGroup"] == "True"
    assert rows[1]["AddedToGroup"] == "False"
    assert rows[1]["Error"] != ""


def test_create_log_schema(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("UserPrincipalName,DisplayName,Password\na@x.com,A,\nb@x.com,B,Given#Password1\n")
    result = run_batch(load_input("create", path), base_config, fake_client, "create")

    header, rows = _read(result.log_path)
    assert header == CREATE_LOG_COLUMNS
    assert [r["Status"] for r in rows] == ["Created", "Created"]
    assert len(rows[0]["TempPassword"]) == 16
    # 入力パスワードはログに出さない
    assert rows[1]["TempPassword"] == ""
    assert "Given#Password1" not in result.log_path.read_text(encoding="utf-8")


def test_dry_run_log_schema(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("UserPrincipalName,DisplayName\na@x.com,A\n")
    cfg = replace(base_config, dry_run=True)
    result = run_batch(load_input("create", path), cfg, fake_client, "create")

    _, rows = _read(result.log_path)
    assert rows == [{
        "UserPrincipalName": "a@x.com",
        "DisplayName": "A",
        "Status": "DryRun",
        "UserId": "",
        "AddedToGroup": "False",
        "TempPassword": "",
        "Error": "",
    }]
