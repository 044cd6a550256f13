from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from entra_batch.csvfile.reader import InputError
from entra_batch.models.row_result import RowStatus
from entra_batch.services.runner import load_input, run_batch


def test_run_batch_mixed_outcomes(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv(
        "UserPrincipalName,DisplayName\n"
        "a@x.com,A\n"
        "b@x.com,\n"          # blank DisplayName -> no result
        "c@x.com,C\n"
        "a@x.com,A again\n"   # duplicate -> no result
        "d@x.com,D\n"
    )
    fake_client.fail_create.add("c@x.com")
    rows = load_input("create", path)
    result = run_batch(rows, base_config, fake_client, "create")

    assert [r.identifier for r in result.results] == ["a@x.com", "c@x.com", "d@x.com"]
    assert [r.status for r in result.results] == [RowStatus.CREATED, RowStatus.ERROR, RowStatus.CREATED]
    assert result.skipped_rows == 2
    assert result.summary[RowStatus.CREATED] == 2
    assert result.summary[RowStatus.ERROR] == 1
    assert result.summary[RowStatus.INVITED] == 0
    assert result.has_errors is True
    assert fake_client.call_names().count("create_user") == 3


def test_run_batch_writes_log_once(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email,Name\na@x.com,A\nb@x.com,B\n")
    result = run_batch(load_input("invite", path), base_config, fake_client, "invite")
    assert result.log_path is not None and result.log_path.exists()
    assert result.log_path.parent == Path("logs")
    assert result.log_path.name.startswith("invite-results-")
    df = pd.read_csv(result.log_path, dtype=str, keep_default_na=False)
    assert list(df["Email"]) == ["a@x.com", "b@x.com"]
    assert list(df["Status"]) == ["Invited", "Invited"]


def test_run_batch_custom_log_path(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\n")
    cfg = replace(base_config, log_path=str(temp_workdir / "out" / "run.csv"))
    result = run_batch(load_input("invite", path), cfg, fake_client, "invite")
    assert result.log_path == temp_workdir / "out" / "run.csv"
    assert result.log_path.exists()


def test_run_batch_throttles_between_rows(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\nb@x.com\nc@x.com\n")
    cfg = replace(base_config, throttle_delay_seconds=2)
    with patch("entra_batch.services.runner.time.sleep") as mock_sleep:
        run_batch(load_input("invite", path), cfg, fake_client, "invite")
    # 行間のみ (最終行の後は待たない)
    assert mock_sleep.call_count == 2
    mock_sleep.assert_called_with(2)


def test_run_batch_no_throttle_by_default(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\nb@x.com\n")
    with patch("entra_batch.services.runner.time.sleep") as mock_sleep:
        run_batch(load_input("invite", path), base_config, fake_client, "invite")
    mock_sleep.assert_not_called()


def test_run_batch_dry_run(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\nb@x.com\n")
    cfg = replace(base_config, dry_run=True, add_to_group_id="g")
    result = run_batch(load_input("invite", path), cfg, fake_client, "invite")
    assert result.summary[RowStatus.DRY_RUN] == 2
    assert fake_client.calls == []


def test_run_batch_does_not_close_client(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("Email\na@x.com\n")
    run_batch(load_input("invite", path), base_config, fake_client, "invite")
    assert fake_client.closed is False


def test_load_input_unknown_pipeline(temp_workdir: Path):
    with pytest.raises(ValueError):
        load_input("delete", temp_workdir / "x.csv")


def test_load_input_missing_required(write_csv):
    path = write_csv("Name\nA\n")
    with pytest.raises(InputError):
        load_input("invite", path)


def test_run_batch_writes_log_when_client_raises_unexpected(temp_workdir: Path, write_csv, fake_client, base_config):
    path = write_csv("UserPrincipalName,DisplayName\na@x.com,A\nb@x.com,B\nc@x.com,C\n")
    create = fake_client.create_user

    def create_or_break(body):
        if body["userPrincipalName"] == "b@x.com":
            raise KeyError("id")
        return create(body)

    fake_client.create_user = create_or_break
    cfg = replace(base_config, log_path=str(temp_workdir / "out" / "run.csv"))
    with pytest.raises(KeyError):
        run_batch(load_input("create", path), cfg, fake_client, "create")

    # 中断前に作成済みの行と一時パスワードはログに残る
    df = pd.read_csv(temp_workdir / "out" / "run.csv", dtype=str, keep_default_na=False)
    assert list(df["UserPrincipalName"]) == ["a@x.com"]
    assert len(df.iloc[0]["TempPassword"]) == 16
