"""Plain data records returned by the IMAP core.

What:
  Frozen dataclasses for folders, folder status snapshots, messages,
  attachments and fetch results.

Why:
  Results cross the boundary into persistence and UI layers. Immutable plain
  values cannot leak references to session internals, and a re-fetch always
  produces a new value instead of patching an old one.

How:
  ``@dataclass(frozen=True)`` records with tuple-typed collections and a
  ``to_dict`` helper built on :func:`dataclasses.asdict`.

Interfaces:
  :class:`Folder`, :class:`FolderStatus`, :class:`Attachment`,
  :class:`Message`, :class:`FetchResult`.

Invariants & Safety:
  - ``Message.uid`` is only meaningful together with ``Message.folder`` and the
    ``FolderStatus.uidvalidity`` observed when it was fetched.
  - ``Attachment.part_id`` is positional and only meaningful inside the
    :class:`Message` it belongs to.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Folder:
    """One mailbox reported by ``LIST`` plus its ``STATUS`` counts.

    Attributes:
      path: Display path decoded from modified UTF-7.
      raw_path: Server-native (modified UTF-7) path.
      name: Last path segment after ``delimiter``.
      delimiter: Hierarchy delimiter reported by the server.
      special_use: Canonical role such as ``\\Sent`` or ``None``.
      exists: Message count, ``0`` when ``STATUS`` failed.
      unseen: Unseen count, ``0`` when ``STATUS`` failed.
      attributes: Raw ``LIST`` attributes.
    """

    path: str
    raw_path: str
    name: str
    delimiter: str
    special_use: Optional[str]
    exists: int
    unseen: int
    attributes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FolderStatus:
    """UID epoch and counters for one folder.

    A change of ``uidvalidity`` between two observations invalidates every UID
    the caller cached for the folder; this record only reports the value.
    """

    uidvalidity: int
    uidnext: int
    exists: int
    unseen: int
    highest_modseq: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Attachment:
    """Metadata for one non-body MIME part.

    Attributes:
      part_id: 1-based position among the message's attachments.
      filename: Declared filename or ``"attachment"``.
      mime_type: ``type/subtype`` or ``application/octet-stream``.
      size: Decoded payload size in bytes.
      content_id: ``Content-ID`` without angle brackets.
      is_inline: ``True`` only for an explicit ``inline`` disposition.
      section: IMAP body section path of the part (``"2"``, ``"1.3"``).
    """

    part_id: str
    filename: str
    mime_type: str
    size: int
    content_id: Optional[str] = None
    is_inline: bool = False
    section: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Message:
    """Application-ready representation of one fetched message."""

    uid: int
    folder: str
    message_id: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: Optional[str] = None
    from_address: Optional[str] = None
    from_name: Optional[str] = None
    to_addresses: Optional[str] = None
    cc_addresses: Optional[str] = None
    bcc_addresses: Optional[str] = None
    reply_to: Optional[str] = None
    subject: Optional[str] = None
    date: int = 0
    is_read: bool = False
    is_starred: bool = False
    is_draft: bool = False
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    snippet: Optional[str] = None
    raw_size: int = 0
    list_unsubscribe: Optional[str] = None
    list_unsubscribe_post: Optional[str] = None
    auth_results: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    internal_date: Optional[int] = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FetchResult:
    """Messages of one UID FETCH plus the status seen at ``SELECT`` time.

    The snapshot and the message set are not atomic with respect to changes
    made by other clients between the two commands.
    """

    folder_status: FolderStatus
    messages: Tuple[Message, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
