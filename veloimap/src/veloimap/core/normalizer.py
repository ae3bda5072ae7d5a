"""Turn one raw MIME message into a :class:`~veloimap.models.Message`.

What:
  Map the IMAP flags, UID, folder and byte length of a fetch response, plus
  the parsed MIME content, onto the application's message record: threading
  headers, addresses, timestamp, body alternatives, snippet and attachment
  metadata.

Why:
  The session layer must hand callers plain values with stable semantics no
  matter how a sender's client shaped the MIME tree. A single normalisation
  function keeps those semantics in one place and makes per-message failures
  (:class:`~veloimap.errors.MessageParseError`) easy to skip in batches.

How:
  :func:`veloimap.utils.mime.parse_bytes` supplies decoded headers and address
  pairs; :func:`veloimap.utils.mime.iter_leaf_parts` walks the tree once,
  choosing the first plain and HTML body leaves and collecting every other
  leaf as an :class:`~veloimap.models.Attachment` numbered from 1.

Interfaces:
  :func:`normalize_message`, :func:`flags_state`, :func:`format_address_list`.

Invariants & Safety:
  - An absent address header yields ``None``, never an empty string.
  - A missing or unparseable ``Date`` yields ``0``; it never fails the message.
  - Attachment ``part_id`` values follow the order the tree walk yields and are
    only meaningful within the returned record.
"""
from __future__ import annotations

import calendar
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from ..models import Attachment, Message
from ..utils import mime


DEFAULT_FILENAME = "attachment"
DEFAULT_MIME_TYPE = "application/octet-stream"

SEEN = "\\seen"
FLAGGED = "\\flagged"
DRAFT = "\\draft"


def _flag_text(flag: Union[bytes, str]) -> str:
    if isinstance(flag, bytes):
        return flag.decode("ascii", errors="replace").lower()
    return str(flag).lower()


def flags_state(flags: Iterable[Union[bytes, str]]) -> Tuple[bool, bool, bool]:
    """Return ``(is_read, is_starred, is_draft)`` for a server flag set."""

    names = {_flag_text(flag) for flag in flags or ()}
    return SEEN in names, FLAGGED in names, DRAFT in names


def _split_ids(value: Union[str, Sequence[str], None]) -> List[str]:
    if value is None:
        return []
    items = [value] if isinstance(value, str) else list(value)
    ids: List[str] = []
    for item in items:
        ids.extend(str(item).split())
    return ids


def first_message_id(value: Union[str, Sequence[str], None]) -> Optional[str]:
    """In-Reply-To: the first identifier of a single or list value."""

    ids = _split_ids(value)
    return ids[0] if ids else None


def join_message_ids(value: Union[str, Sequence[str], None]) -> Optional[str]:
    """References: every identifier joined by single spaces."""

    ids = _split_ids(value)
    return " ".join(ids) if ids else None


def format_address(display: str, email: str) -> str:
    return f"{display} <{email}>" if display else email


def format_address_list(pairs: Optional[Sequence[Tuple[str, str]]]) -> Optional[str]:
    """Render pairs as ``"Name <email>, email"``; ``None`` when empty."""

    if not pairs:
        return None
    return ", ".join(format_address(display, email) for display, email in pairs)


def _timestamp(value: Optional[datetime]) -> int:
    """Epoch seconds for ``value``; naive datetimes are taken as UTC."""

    if not isinstance(value, datetime):
        return 0
    try:
        return calendar.timegm(value.utctimetuple())
    except (OverflowError, ValueError):
        return 0


def _message_date(mail: Any) -> int:
    if mail.message.get("Date") is None:
        return 0
    try:
        return _timestamp(mail.date)
    except (TypeError, ValueError, OverflowError):
        return 0


def _content_id(part: Any) -> Optional[str]:
    value = part.get("Content-ID")
    if value is None:
        return None
    value = str(value).strip().strip("<>").strip()
    return value or None


def _attachment(index: int, section: str, part: Any) -> Attachment:
    filename = mime.decode_header_value(part.get_filename()) or DEFAULT_FILENAME
    if part.get("Content-Type") is None:
        mime_type = DEFAULT_MIME_TYPE
    else:
        mime_type = part.get_content_type() or DEFAULT_MIME_TYPE
    return Attachment(
        part_id=str(index),
        filename=filename,
        mime_type=mime_type,
        size=mime.payload_size(part),
        content_id=_content_id(part),
        is_inline=part.get_content_disposition() == "inline",
        section=section,
    )


def _walk(mail: Any) -> Tuple[Optional[str], Optional[str], Tuple[Attachment, ...]]:
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    attachments: List[Attachment] = []
    for section, part in mime.iter_leaf_parts(mail.message):
        if mime.is_attachment_part(part):
            attachments.append(_attachment(len(attachments) + 1, section, part))
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain" and body_text is None:
            body_text = mime.decode_text(part)
        elif content_type == "text/html" and body_html is None:
            body_html = mime.decode_text(part)
    return body_text, body_html, tuple(attachments)


def normalize_message(
    raw: bytes,
    uid: int,
    folder: str,
    flags: Iterable[Union[bytes, str]] = (),
    raw_size: Optional[int] = None,
    internal_date: Optional[datetime] = None,
) -> Message:
    """Build a :class:`Message` from one fetch response.

    Args:
      raw: Full ``BODY[]`` bytes.
      uid: Server UID of the message.
      folder: Display path of the folder it was fetched from.
      flags: ``FLAGS`` items as bytes or strings.
      raw_size: Byte length to report, ``len(raw)`` by default.
      internal_date: Server ``INTERNALDATE`` when fetched.

    Returns:
      A new immutable :class:`Message`.

    Raises:
      MessageParseError: When the MIME structure cannot be parsed at all.
    """

    mail = mime.parse_bytes(raw)
    is_read, is_starred, is_draft = flags_state(flags)

    from_pairs = mime.addresses(mail, "From") or []
    from_name, from_address = from_pairs[0] if from_pairs else (None, None)

    body_text, body_html, attachments = _walk(mail)

    return Message(
        uid=int(uid),
        folder=folder,
        message_id=mime.first_header(mail, "Message-ID") or None,
        in_reply_to=first_message_id(mime.header(mail, "In-Reply-To")),
        references=join_message_ids(mime.header(mail, "References")),
        from_address=from_address,
        from_name=from_name or None,
        to_addresses=format_address_list(mime.addresses(mail, "To")),
        cc_addresses=format_address_list(mime.addresses(mail, "Cc")),
        bcc_addresses=format_address_list(mime.addresses(mail, "Bcc")),
        reply_to=format_address_list(mime.addresses(mail, "Reply-To")),
        subject=mime.first_header(mail, "Subject"),
        date=_message_date(mail),
        is_read=is_read,
        is_starred=is_starred,
        is_draft=is_draft,
        body_html=body_html,
        body_text=body_text,
        snippet=mime.make_snippet(body_text),
        raw_size=len(raw) if raw_size is None else int(raw_size),
        list_unsubscribe=mime.first_header(mail, "List-Unsubscribe"),
        list_unsubscribe_post=mime.first_header(mail, "List-Unsubscribe-Post"),
        auth_results=mime.first_header(mail, "Authentication-Results"),
        attachments=attachments,
        internal_date=_timestamp(internal_date) if internal_date is not None else None,
    )
