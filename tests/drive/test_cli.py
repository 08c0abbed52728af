"""运维命令测试。"""

import json
from datetime import timedelta

import pytest
from click.testing import CliRunner

from app.packages.drive import cli as cli_module
from app.packages.drive.core.timezone import utcnow
from app.packages.drive.crud.trash_entry import trash_entry_crud


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """命令组会重新配置日志，测试中跳过以免日志混入命令输出。"""
    monkeypatch.setattr(cli_module, "setup_logging", lambda: None)


def test_cleanup_trash_prints_sweep_summary(db_session_fixture, store, monkeypatch):
    now = utcnow()
    store.put("trash/ws-cli/1_old.txt", b"old")
    record = trash_entry_crud.create(
        db_session_fixture,
        {
            "workspace_id": "ws-cli",
            "original_path": "ws-cli/old.txt",
            "file_name": "old.txt",
            "file_size": 3,
            "content_type": "text/plain",
            "trash_path": "trash/ws-cli/1_old.txt",
            "deleted_at": now - timedelta(days=31),
            "expires_at": now - timedelta(days=1),
        },
    )
    record_id = record.id
    monkeypatch.setattr(cli_module, "build_object_store", lambda: store)

    result = CliRunner().invoke(cli_module.cli, ["cleanup-trash"])

    assert result.exit_code == 0, result.output
    summary = json.loads(result.output)
    assert summary["successCount"] == 1
    assert summary["details"] == [{"id": record_id, "status": "success"}]
    assert not store.exists("trash/ws-cli/1_old.txt")


def test_audit_trash_exits_non_zero_on_inconsistency(store, monkeypatch):
    store.put("trash/ws-cli/1_stray.txt", b"stray")
    monkeypatch.setattr(cli_module, "build_object_store", lambda: store)

    result = CliRunner().invoke(cli_module.cli, ["audit-trash", "--workspace", "ws-cli"])

    assert result.exit_code == 1
    report = json.loads(result.output)
    assert report["untrackedObjects"] == ["trash/ws-cli/1_stray.txt"]

    repaired = CliRunner().invoke(cli_module.cli, ["audit-trash", "--workspace", "ws-cli", "--repair"])
    assert repaired.exit_code == 0
    assert json.loads(repaired.output)["repaired"]["successCount"] == 1
