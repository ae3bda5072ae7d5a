"""Security negotiation: open an IMAP connection in the configured mode.

What:
  Turn an :class:`~veloimap.config.ImapConfig` into a connected, greeted
  ``imapclient.IMAPClient`` wrapped in a :class:`Transport` that records
  whether the stream is encrypted.

Why:
  Failures before authentication are the most common support case ("wrong
  port", "server does not offer STARTTLS", "certificate rejected"). Each one
  must surface with the stage it happened at so the account settings screen
  can point at the right field.

How:
  ``tls`` connects with implicit TLS, ``starttls`` connects in clear, checks the
  greeting and upgrades the stream, ``none`` stays in clear. The security mode
  is validated before any socket is opened. Certificates are verified with
  :func:`ssl.create_default_context` unless a context is supplied.

Interfaces:
  :class:`TransportKind`, :class:`Transport`, :func:`open_transport`.

Invariants & Safety:
  - A half-negotiated connection is always shut down before the error is
    raised; callers never receive a transport in an unknown state.
  - ``TransportKind.PLAIN`` is only produced for ``security: none``.
"""
from __future__ import annotations

import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.schema import ImapConfig, SecurityMode
from ..errors import TransportError
from ..utils.logging import get_logger


LOGGER = get_logger("veloimap.transport")


class TransportKind(str, Enum):
    """Whether the byte stream is encrypted."""

    PLAIN = "plain"
    TLS = "tls"


@dataclass
class Transport:
    """A greeted IMAP connection ready for authentication.

    Attributes:
      kind: Encryption state of the stream.
      client: Connected ``IMAPClient`` (UID mode, timezone-aware dates).
      host: Server host name, kept for error context.
      port: Server port.
    """

    kind: TransportKind
    client: Any
    host: str
    port: int

    @property
    def encrypted(self) -> bool:
        return self.kind is TransportKind.TLS

    def shutdown(self) -> None:
        """Close the socket without a LOGOUT exchange."""

        try:
            self.client.shutdown()
        except (OSError, IMAPClientError):
            LOGGER.debug("transport_shutdown_failed", host=self.host)


def _connect(
    config: ImapConfig,
    use_ssl: bool,
    ssl_context: Optional[ssl.SSLContext],
    starttls: bool = False,
) -> Any:
    try:
        client = IMAPClient(
            config.host,
            port=config.port,
            use_uid=True,
            ssl=use_ssl,
            ssl_context=ssl_context,
            timeout=config.timeout,
        )
    except ssl.SSLError as exc:
        raise TransportError(
            f"TLS handshake with {config.host}:{config.port} failed",
            stage="tls",
            host=config.host,
            port=config.port,
            cause=exc,
        ) from exc
    except IMAPClientError as exc:
        # imaplib refuses a greeting that is neither OK nor PREAUTH.
        if starttls:
            raise TransportError(
                f"{config.host} did not greet with OK before STARTTLS",
                stage="starttls",
                host=config.host,
                port=config.port,
                greeting=str(exc),
                cause=exc,
            ) from exc
        raise TransportError(
            f"Could not connect to {config.host}:{config.port}",
            stage="tcp",
            host=config.host,
            port=config.port,
            cause=exc,
        ) from exc
    except OSError as exc:
        raise TransportError(
            f"Could not connect to {config.host}:{config.port}",
            stage="tcp",
            host=config.host,
            port=config.port,
            cause=exc,
        ) from exc
    # INTERNALDATE as aware datetimes so epoch conversion does not depend on
    # the local timezone.
    client.normalise_times = False
    return client


def _starttls(client: Any, config: ImapConfig, ssl_context: ssl.SSLContext) -> None:
    welcome = client.welcome or b""
    if isinstance(welcome, str):
        welcome = welcome.encode("ascii", errors="replace")
    greeting = welcome.decode("ascii", errors="replace").strip()
    if welcome.upper().startswith(b"* PREAUTH"):
        raise TransportError(
            f"{config.host} pre-authenticated the plaintext connection; refusing to continue without STARTTLS",
            stage="starttls",
            host=config.host,
            port=config.port,
            greeting=greeting,
        )
    if not welcome.upper().startswith(b"* OK"):
        raise TransportError(
            f"{config.host} did not greet with OK before STARTTLS",
            stage="starttls",
            host=config.host,
            port=config.port,
            greeting=greeting,
        )
    try:
        client.starttls(ssl_context)
    except ssl.SSLError as exc:
        raise TransportError(
            f"TLS handshake with {config.host}:{config.port} failed after STARTTLS",
            stage="tls",
            host=config.host,
            port=config.port,
            cause=exc,
        ) from exc
    except (IMAPClientError, OSError) as exc:
        raise TransportError(
            f"STARTTLS rejected by {config.host}",
            stage="starttls",
            host=config.host,
            port=config.port,
            cause=exc,
        ) from exc


def open_transport(config: ImapConfig, ssl_context: Optional[ssl.SSLContext] = None) -> Transport:
    """Connect to ``config.host`` using ``config.security``.

    Args:
      config: Account configuration.
      ssl_context: Context used for implicit TLS and STARTTLS. Defaults to
        :func:`ssl.create_default_context` (certificate and host name checks).

    Returns:
      A :class:`Transport` whose greeting has been read.

    Raises:
      ConfigurationError: Unknown security mode; nothing was connected.
      TransportError: Connection, handshake or STARTTLS failure with
        ``stage`` set to ``tcp``, ``tls`` or ``starttls``.
    """

    mode = config.security_mode
    if mode is not SecurityMode.NONE and ssl_context is None:
        ssl_context = ssl.create_default_context()

    if mode is SecurityMode.TLS:
        client = _connect(config, True, ssl_context)
        kind = TransportKind.TLS
    elif mode is SecurityMode.STARTTLS:
        client = _connect(config, False, None, starttls=True)
        try:
            _starttls(client, config, ssl_context)
        except TransportError:
            Transport(TransportKind.PLAIN, client, config.host, config.port).shutdown()
            raise
        kind = TransportKind.TLS
    else:
        client = _connect(config, False, None)
        kind = TransportKind.PLAIN

    LOGGER.info("transport_open", host=config.host, port=config.port, security=mode.value, kind=kind.value)
    return Transport(kind, client, config.host, config.port)
