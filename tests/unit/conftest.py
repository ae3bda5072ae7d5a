"""Pytest fixtures for unit tests requiring IMAP fakes.

What:
  Make ``tests/unit`` importable and expose a :class:`FakeImapBackend`
  installed in place of ``imapclient.IMAPClient``, plus a connected
  :class:`~veloimap.imap.ImapSession` on top of it.

How:
  ``veloimap.imap.transport.IMAPClient`` is monkeypatched with a factory that
  records its keyword arguments and returns the shared backend. Session logs
  go to an in-memory stream so tests can assert on warnings.
"""

import io
import json
import sys
from pathlib import Path

import pytest

from veloimap.config import ImapConfig
from veloimap.imap import connect
from veloimap.utils.logging import JsonLogger

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    """Install a fresh fake server for the duration of one test."""

    fake = FakeImapBackend()

    def factory(host, port=None, use_uid=True, ssl=True, ssl_context=None, timeout=None):
        fake.connect_args = {
            "host": host,
            "port": port,
            "use_uid": use_uid,
            "ssl": ssl,
            "ssl_context": ssl_context,
            "timeout": timeout,
        }
        return fake

    monkeypatch.setattr("veloimap.imap.transport.IMAPClient", factory)
    return fake


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(host="imap.example.org", username="user@example.org", secret="hunter2")


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def log_entries(log_stream):
    """Return a callable decoding every JSON line written so far."""

    def read():
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line]

    return read


@pytest.fixture
def session(backend, imap_config, log_stream):
    """Yield an authenticated session backed by the fake server."""

    active = connect(imap_config, logger=JsonLogger(stream=log_stream, component="test"))
    yield active
    active.logout()
