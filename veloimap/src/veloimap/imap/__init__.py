"""Facade for the IMAP protocol layer.

What:
  Surface the transport negotiator, the authenticator and the session
  operations used by the rest of the application.

How:
  Re-exports from :mod:`.transport`, :mod:`.auth` and :mod:`.session`; call
  sites should not import the submodules directly.
"""

from .auth import XOAuth2Mechanism, authenticate
from .session import ImapSession, connect, test_connection
from .transport import Transport, TransportKind, open_transport

__all__ = [
    "ImapSession",
    "Transport",
    "TransportKind",
    "XOAuth2Mechanism",
    "authenticate",
    "connect",
    "open_transport",
    "test_connection",
]
