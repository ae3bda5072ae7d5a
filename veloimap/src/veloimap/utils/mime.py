"""MIME helpers shared by the message normalizer.

What:
  Parse raw RFC 5322 bytes with ``mailparser``, expose decoded headers and
  address pairs, enumerate leaf parts together with their IMAP section paths,
  decode text payloads and build snippets.

Why:
  Server input is untrusted: charsets lie, headers repeat, multiparts lack
  boundaries. Keeping the lenient decoding in one module lets the
  normalizer read like a field-by-field mapping.

How:
  ``mailparser.parse_from_bytes`` provides the decoded header surface
  (``getattr(mail, "in_reply_to")`` returns a string, or a list when the
  header repeats) and RFC 2047-decoded address pairs. The underlying
  :class:`email.message.Message` tree (``mail.message``) is walked depth-first
  to number parts the way IMAP ``BODY[<section>]`` does.

Interfaces:
  :func:`parse_bytes`, :func:`header`, :func:`first_header`,
  :func:`addresses`, :func:`iter_leaf_parts`, :func:`is_attachment_part`,
  :func:`decode_text`, :func:`payload_size`, :func:`decode_header_value`,
  :func:`make_snippet`.

Invariants & Safety:
  - Text decoding never raises: unknown charsets fall back to UTF-8 and
    undecodable bytes are replaced.
  - ``message/rfc822`` parts are treated as leaves; their inner structure is
    not flattened into the outer message.
"""
from __future__ import annotations

from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message as EmailMessage
from typing import Any, Iterator, List, Optional, Tuple, Union

from mailparser import parse_from_bytes

from ..errors import MessageParseError


SNIPPET_LENGTH = 200
"""Maximum number of characters kept in a snippet before the ellipsis."""

ELLIPSIS = "..."

BODY_TYPES = ("text/plain", "text/html")

HeaderValue = Union[str, List[str]]


def parse_bytes(raw: bytes) -> Any:
    """Parse ``raw`` into a ``mailparser.MailParser``.

    Raises:
      MessageParseError: When ``raw`` is empty, carries no header fields, or
        the parser itself fails.
    """

    if not raw or not raw.strip():
        raise MessageParseError("Failed to parse MIME message: empty payload")
    try:
        mail = parse_from_bytes(raw)
    except Exception as exc:
        raise MessageParseError("Failed to parse MIME message", cause=exc) from exc
    if not list(mail.message.keys()):
        raise MessageParseError("Failed to parse MIME message: no header fields")
    return mail


def _attribute_name(name: str) -> str:
    attribute = name.lower().replace("-", "_")
    return "from_" if attribute == "from" else attribute


def header(mail: Any, name: str) -> Optional[HeaderValue]:
    """Return the decoded ``name`` header, a list when it repeats.

    ``None`` when the message does not carry the header at all.
    """

    if mail.message.get(name) is None:
        return None
    return getattr(mail, _attribute_name(name))


def first_header(mail: Any, name: str) -> Optional[str]:
    """Return the first decoded occurrence of ``name`` or ``None``."""

    value = header(mail, name)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value).strip()


def addresses(mail: Any, name: str) -> Optional[List[Tuple[str, str]]]:
    """Return ``(display_name, email)`` pairs of an address header.

    Entries without an address part are dropped. ``None`` means the header is
    absent, an empty list means it is present but holds no usable address.
    """

    if mail.message.get(name) is None:
        return None
    pairs = getattr(mail, _attribute_name(name)) or []
    result: List[Tuple[str, str]] = []
    for display, email in pairs:
        email = (email or "").strip()
        if email:
            result.append(((display or "").strip(), email))
    return result


def iter_leaf_parts(message: EmailMessage, section: str = "") -> Iterator[Tuple[str, EmailMessage]]:
    """Yield ``(section, part)`` for every leaf in depth-first order.

    Sections follow IMAP numbering: children of a multipart are ``1..n`` joined
    with dots, and a non-multipart message body is section ``1``.
    """

    if message.get_content_maintype() == "multipart" and message.is_multipart():
        for index, child in enumerate(message.get_payload(), start=1):
            child_section = f"{section}.{index}" if section else str(index)
            yield from iter_leaf_parts(child, child_section)
        return
    yield section or "1", message


def is_attachment_part(part: EmailMessage) -> bool:
    """Tell whether a leaf is an attachment rather than a body alternative."""

    if part.get_content_disposition() == "attachment":
        return True
    if part.get_filename():
        return True
    return part.get_content_type() not in BODY_TYPES


def decode_text(part: EmailMessage) -> str:
    """Decode a text leaf using its declared charset."""

    payload = part.get_payload(decode=True)
    if not isinstance(payload, bytes):
        payload = b""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def payload_size(part: EmailMessage) -> int:
    """Return the decoded size of a leaf in bytes."""

    if part.get_content_type() == "message/rfc822" and part.is_multipart():
        return sum(len(inner.as_bytes()) for inner in part.get_payload())
    payload = part.get_payload(decode=True)
    return len(payload) if isinstance(payload, bytes) else 0


def decode_header_value(value: Optional[str]) -> Optional[str]:
    """Decode RFC 2047 encoded-words, returning the input on failure."""

    if value is None:
        return None
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, UnicodeError, LookupError):
        return str(value)


def make_snippet(text: Optional[str]) -> Optional[str]:
    """Collapse whitespace in ``text`` and clamp it to :data:`SNIPPET_LENGTH`.

    What:
      Produce a one-line preview from the plain-text body.

    How:
      ``str.split`` without arguments splits on any run of whitespace
      (newlines, tabs, non-breaking spaces), so joining with a single space
      collapses and trims in one step. Truncation counts characters, never
      bytes, and appends :data:`ELLIPSIS` only when something was cut.
    """

    if text is None:
        return None
    collapsed = " ".join(text.split())
    if len(collapsed) > SNIPPET_LENGTH:
        return collapsed[:SNIPPET_LENGTH] + ELLIPSIS
    return collapsed
