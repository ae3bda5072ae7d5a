"""Closed error taxonomy for the IMAP core.

What:
  Define :class:`ErrorKind` and the :class:`ImapCoreError` hierarchy raised by
  every public operation, each instance carrying structured context (host,
  folder, UID, command, underlying cause).

Why:
  Callers decide between "reconnect", "re-authenticate", "skip this message"
  and "show the user" based on the failure category. Branching on a kind is
  reliable where parsing free-form error strings is not.

How:
  A single base class stores the kind and keyword context and renders a
  human-readable message; one thin subclass per kind fixes the ``kind``
  attribute so ``except`` clauses can target either the category or the base.

Interfaces:
  :class:`ErrorKind`, :class:`ImapCoreError`, :class:`ConfigurationError`,
  :class:`TransportError`, :class:`AuthenticationError`,
  :class:`CommandError`, :class:`NotFoundError`, :class:`MessageParseError`.

Invariants & Safety:
  - Secrets never appear in error context; only host, port, username-free
    stage labels and server responses are recorded.
  - No error in this module triggers a retry; retry policy belongs to callers.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    CONFIG = "config"
    TRANSPORT = "transport"
    AUTH = "auth"
    PROTOCOL = "protocol"
    NOT_FOUND = "not_found"
    PARSE = "parse"


class ImapCoreError(Exception):
    """Base class for every failure raised by the IMAP core.

    What:
      Couple a human-readable message with an :class:`ErrorKind` and a
      dictionary of structured context fields.

    Why:
      Log pipelines and UIs need both: the message for people, the fields for
      code that groups or filters failures.

    How:
      Keyword arguments with a ``None`` value are dropped so ``context`` only
      lists what is actually known. ``cause`` is rendered with ``str`` so the
      error stays serialisable.

    Attributes:
      kind: Category of the failure.
      context: Structured fields (``host``, ``folder``, ``uid`` ...).
    """

    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {}
        for key, value in context.items():
            if value is None:
                continue
            self.context[key] = str(value) if key == "cause" else value

        self.host: Optional[str] = self.context.get("host")
        self.stage: Optional[str] = self.context.get("stage")
        self.method: Optional[str] = self.context.get("method")
        self.command: Optional[str] = self.context.get("command")
        self.folder: Optional[str] = self.context.get("folder")
        self.uid: Optional[int] = self.context.get("uid")
        self.cause: Optional[str] = self.context.get("cause")

    def to_dict(self) -> Dict[str, Any]:
        """Return the error as plain data for logging or IPC."""

        payload: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        payload.update(self.context)
        return payload


class ConfigurationError(ImapCoreError):
    """Invalid configuration, such as an unknown security mode."""

    kind = ErrorKind.CONFIG


class TransportError(ImapCoreError):
    """TCP connect, TLS handshake or STARTTLS negotiation failure.

    ``stage`` is one of ``tcp``, ``tls``, ``starttls`` or ``session`` (the
    session was already torn down by an earlier abort).
    """

    kind = ErrorKind.TRANSPORT


class AuthenticationError(ImapCoreError):
    """LOGIN or XOAUTH2 rejection; ``method`` names the mechanism."""

    kind = ErrorKind.AUTH


class CommandError(ImapCoreError):
    """An IMAP command answered with a negative (``NO``/``BAD``) response."""

    kind = ErrorKind.PROTOCOL


class NotFoundError(ImapCoreError):
    """A requested UID or body part was absent from the server response."""

    kind = ErrorKind.NOT_FOUND


class MessageParseError(ImapCoreError):
    """One message's MIME structure could not be parsed."""

    kind = ErrorKind.PARSE


def describe(error: Optional[BaseException]) -> str:
    """Render ``error`` for summaries, preferring the core message."""

    if error is None:
        return ""
    if isinstance(error, ImapCoreError):
        return error.message
    return f"{type(error).__name__}: {error}"
