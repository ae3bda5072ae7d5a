"""Security negotiation against the fake backend.

Each mode must end in the right transport kind, and each failure must report
the stage it happened at without leaving a socket open.
"""

import socket
import ssl

import pytest
from imapclient.exceptions import IMAPClientError

from veloimap.config import ImapConfig
from veloimap.errors import ConfigurationError, ErrorKind, TransportError
from veloimap.imap import TransportKind, open_transport


def _config(security: str, port: int = 993) -> ImapConfig:
    return ImapConfig(
        host="imap.example.org",
        port=port,
        security=security,
        username="user@example.org",
        secret="hunter2",
    )


def test_tls_connects_with_implicit_tls(backend):
    transport = open_transport(_config("tls"))

    assert transport.kind is TransportKind.TLS
    assert transport.encrypted
    assert backend.connect_args["ssl"] is True
    assert isinstance(backend.connect_args["ssl_context"], ssl.SSLContext)
    assert backend.connect_args["use_uid"] is True
    assert backend.normalise_times is False
    assert "starttls" not in backend.command_names()


def test_legacy_ssl_spelling_means_tls(backend):
    transport = open_transport(_config("SSL"))

    assert transport.kind is TransportKind.TLS


def test_none_stays_plain(backend):
    transport = open_transport(_config("none", port=143))

    assert transport.kind is TransportKind.PLAIN
    assert backend.connect_args["ssl"] is False
    assert backend.connect_args["port"] == 143
    assert "starttls" not in backend.command_names()


def test_starttls_upgrades_same_connection(backend):
    transport = open_transport(_config("starttls", port=143))

    assert transport.kind is TransportKind.TLS
    assert backend.connect_args["ssl"] is False
    assert backend.command_names() == ["starttls"]
    assert isinstance(backend.calls[0][1], ssl.SSLContext)


def test_starttls_requires_ok_greeting(backend):
    backend.welcome = b"* BYE server shutting down"

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config("starttls", port=143))

    assert excinfo.value.stage == "starttls"
    assert excinfo.value.kind is ErrorKind.TRANSPORT
    assert "starttls" not in backend.command_names()
    assert backend.closed


def test_starttls_refuses_preauth_greeting(backend):
    backend.welcome = b"* PREAUTH IMAP4rev1 server logged in as user"

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config("starttls", port=143))

    assert excinfo.value.stage == "starttls"
    assert excinfo.value.context["greeting"].startswith("* PREAUTH")
    assert "starttls" not in backend.command_names()
    assert backend.closed


def test_greeting_rejected_while_connecting_is_starttls_stage(monkeypatch):
    def factory(*args, **kwargs):
        # imaplib raises IMAP4.error with the greeting when it is not OK or PREAUTH.
        raise IMAPClientError("b'* BYE too many connections'")

    monkeypatch.setattr("veloimap.imap.transport.IMAPClient", factory)

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config("starttls", port=143))

    assert excinfo.value.stage == "starttls"
    assert "BYE too many connections" in excinfo.value.context["greeting"]


def test_starttls_rejection_is_reported_as_starttls_stage(backend):
    backend.failures["starttls"] = IMAPClientError("starttls failed: BAD not supported")

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config("starttls", port=143))

    assert excinfo.value.stage == "starttls"
    assert excinfo.value.host == "imap.example.org"
    assert backend.closed


def test_starttls_handshake_failure_is_reported_as_tls_stage(backend):
    backend.failures["starttls"] = ssl.SSLError("certificate verify failed")

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config("starttls", port=143))

    assert excinfo.value.stage == "tls"
    assert backend.closed


def test_unknown_security_mode_fails_before_connecting(backend):
    with pytest.raises(ConfigurationError) as excinfo:
        open_transport(_config("ssl3"))

    message = str(excinfo.value)
    assert "ssl3" in message
    assert '"tls", "starttls", "none"' in message
    assert backend.connect_args == {}


@pytest.mark.parametrize(
    ("security", "error", "stage"),
    [
        ("tls", ConnectionRefusedError("refused"), "tcp"),
        ("tls", socket.gaierror(-2, "Name or service not known"), "tcp"),
        ("tls", IMAPClientError("b'* BYE go away'"), "tcp"),
        ("none", TimeoutError("timed out"), "tcp"),
        ("tls", ssl.SSLCertVerificationError("hostname mismatch"), "tls"),
    ],
)
def test_connect_failures_carry_stage_host_and_port(monkeypatch, security, error, stage):
    def factory(*args, **kwargs):
        raise error

    monkeypatch.setattr("veloimap.imap.transport.IMAPClient", factory)

    with pytest.raises(TransportError) as excinfo:
        open_transport(_config(security))

    assert excinfo.value.stage == stage
    assert excinfo.value.context["host"] == "imap.example.org"
    assert excinfo.value.context["port"] == 993
