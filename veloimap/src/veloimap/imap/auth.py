"""LOGIN and XOAUTH2 authentication over an open transport."""
from __future__ import annotations

from dataclasses import dataclass, field

from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError

from ..config.schema import AuthMethod, ImapConfig
from ..errors import AuthenticationError, TransportError
from ..utils.logging import get_logger
from .transport import Transport


LOGGER = get_logger("veloimap.auth")

XOAUTH2 = "XOAUTH2"


def xoauth2_initial_response(username: str, access_token: str) -> bytes:
    """Build the SASL XOAUTH2 client response (before base64 encoding)."""

    return f"user={username}\x01auth=Bearer {access_token}\x01\x01".encode("utf-8")


@dataclass
class XOAuth2Mechanism:
    """SASL responder passed to ``IMAPClient.sasl_login``.

    The first challenge receives the credential. A server that rejects the
    token sends a second challenge carrying a JSON error; answering it with an
    empty response lets the server finish with ``NO``.
    """

    username: str
    access_token: str = field(repr=False)
    calls: int = 0

    def __call__(self, challenge: bytes) -> bytes:
        self.calls += 1
        if self.calls == 1:
            return xoauth2_initial_response(self.username, self.access_token)
        return b""


def authenticate(transport: Transport, config: ImapConfig) -> None:
    """Authenticate ``transport`` with the method chosen in ``config``.

    Raises:
      AuthenticationError: The server rejected the credentials. ``method`` is
        ``password`` or ``oauth2`` and the server text is kept as ``cause``.
      TransportError: The connection dropped during the exchange.
    """

    method = config.auth_method
    client = transport.client
    try:
        if method is AuthMethod.OAUTH2:
            client.sasl_login(XOAUTH2, XOAuth2Mechanism(config.username, config.secret))
        else:
            client.login(config.username, config.secret)
    except IMAPClientAbortError as exc:
        transport.shutdown()
        raise TransportError(
            f"Connection to {transport.host} lost during authentication",
            stage="session",
            host=transport.host,
            cause=exc,
        ) from exc
    except (LoginError, IMAPClientError) as exc:
        LOGGER.warning("auth_rejected", host=transport.host, method=method.value)
        raise AuthenticationError(
            f"Authentication failed for {config.username} on {transport.host}",
            method=method.value,
            host=transport.host,
            cause=exc,
        ) from exc
    except OSError as exc:
        transport.shutdown()
        raise TransportError(
            f"Connection to {transport.host} lost during authentication",
            stage="session",
            host=transport.host,
            cause=exc,
        ) from exc
    LOGGER.info("auth_ok", host=transport.host, method=method.value)
