"""JSON log entries and error payloads."""

import io
import json

from veloimap.errors import CommandError, describe
from veloimap.utils.logging import JsonLogger


def test_entries_are_single_line_json_with_redaction():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="session")

    logger.warning("fetch_failed", folder="INBOX", subject="Payroll", extra={"password": "x", "uid": 4})

    (line,) = stream.getvalue().splitlines()
    entry = json.loads(line)
    assert entry["lvl"] == "WARN"
    assert entry["msg"] == "fetch_failed"
    assert entry["component"] == "session"
    assert entry["folder"] == "INBOX"
    assert entry["subject"] == "[redacted]"
    assert entry["extra"] == {"password": "[redacted]", "uid": 4}


def test_error_payload_drops_unknown_context():
    error = CommandError("STORE failed", command="STORE", folder="INBOX", uid=None, cause=ValueError("NO"))

    assert error.to_dict() == {
        "kind": "protocol",
        "message": "STORE failed",
        "command": "STORE",
        "folder": "INBOX",
        "cause": "NO",
    }
    assert describe(error) == "STORE failed"
    assert describe(KeyError("x")) == "KeyError: 'x'"


def test_bound_context_and_threshold():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="session", min_level="WARN").bind(host="imap.example.org")

    logger.info("folder_listed", folder="INBOX")
    logger.error("session_aborted", error="OSError", nested=[{"secret": "s"}])

    (line,) = stream.getvalue().splitlines()
    entry = json.loads(line)
    assert entry["host"] == "imap.example.org"
    assert entry["nested"] == [{"secret": "[redacted]"}]
