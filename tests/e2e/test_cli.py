"""End-to-end tests for the ``veloimap.cli`` probes.

What:
  Invoke the Typer application with :class:`typer.testing.CliRunner` against
  an account file on disk and the in-memory IMAP backend.

Why:
  The probes are what operators run when an account misbehaves; exit codes
  and output formats must stay stable.
"""

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

UNIT_DIR = Path(__file__).resolve().parents[1] / "unit"
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend, build_message
from veloimap.cli import app


ACCOUNT = """\
host: imap.example.org
security: tls
username: user@example.org
secret: hunter2
"""

runner = CliRunner()


@pytest.fixture
def server(monkeypatch, tmp_path):
    backend = FakeImapBackend()
    backend.add_folder("[Gmail]", [b"\\Noselect"])
    backend.add_folder("[Gmail]/Sent Mail")
    backend.add_message("INBOX", build_message())
    monkeypatch.setattr("veloimap.imap.transport.IMAPClient", lambda *args, **kwargs: backend)
    (tmp_path / "imap.yaml").write_text(ACCOUNT, encoding="utf-8")
    return backend


def test_probe_reports_folder_count(server):
    result = runner.invoke(app, ["probe"])

    assert result.exit_code == 0
    assert "Connected successfully. Found 3 folder(s)." in result.stdout


def test_folders_prints_json_without_containers(server):
    result = runner.invoke(app, ["folders"])

    assert result.exit_code == 0
    folders = json.loads(result.stdout)
    assert [folder["path"] for folder in folders] == ["INBOX", "[Gmail]/Sent Mail"]
    assert folders[0]["exists"] == 1
    assert folders[1]["special_use"] == "\\Sent"


def test_folders_all_includes_containers(server):
    result = runner.invoke(app, ["folders", "--all"])

    assert result.exit_code == 0
    assert "[Gmail]" in [folder["path"] for folder in json.loads(result.stdout)]


def test_status_prints_snapshot(server, tmp_path):
    result = runner.invoke(app, ["status", "INBOX", "--config", str(tmp_path / "imap.yaml")])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "uidvalidity": 1700000000,
        "uidnext": 2,
        "exists": 1,
        "unseen": 1,
        "highest_modseq": None,
    }


def test_authentication_failure_exits_with_one(server):
    server.accepted = ("user@example.org", "rotated")

    result = runner.invoke(app, ["probe"])

    assert result.exit_code == 1
    assert "Authentication failed" in result.output
    assert "hunter2" not in result.output


def test_missing_configuration_exits_with_one():
    result = runner.invoke(app, ["probe"])

    assert result.exit_code == 1
    assert "Unable to locate IMAP configuration" in result.output
