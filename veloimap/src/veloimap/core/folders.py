"""Special-use classification and label mapping for IMAP folders.

What:
  Decide the canonical role of a folder (``\\Sent``, ``\\Trash`` ...) from its
  ``LIST`` attributes or, failing that, from well-known names, and derive the
  label identifiers the mail UI groups messages by.

Why:
  Servers without RFC 6154 support still name their folders predictably
  ("Sent Items", "[Gmail]/Trash"). Without the name fallback, moves to Trash
  or Junk would have no target on those servers.

How:
  Attributes are compared case-insensitively against the recognised set; the
  first match wins. Otherwise the lower-cased full path is looked up in
  :data:`FOLDER_NAMES`. Label mapping layers a second table on top of the
  special-use tag.

Interfaces:
  :func:`classify_folder`, :func:`map_folder_to_label`,
  :func:`labels_for_message`, :func:`syncable_folders`, :class:`FolderLabel`.

Invariants & Safety:
  - Classification is pure: the same path and attributes always give the same
    tag.
  - ``None`` means an ordinary folder; callers must not guess further.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models import Folder


SENT = "\\Sent"
TRASH = "\\Trash"
DRAFTS = "\\Drafts"
JUNK = "\\Junk"
ARCHIVE = "\\Archive"
ALL = "\\All"
FLAGGED = "\\Flagged"

SPECIAL_USE_ATTRIBUTES: Dict[str, str] = {
    value.lower(): value for value in (SENT, TRASH, DRAFTS, JUNK, ARCHIVE, ALL, FLAGGED)
}

FOLDER_NAMES: Dict[str, str] = {
    "sent": SENT,
    "sent messages": SENT,
    "sent items": SENT,
    "[gmail]/sent mail": SENT,
    "trash": TRASH,
    "deleted": TRASH,
    "deleted items": TRASH,
    "deleted messages": TRASH,
    "[gmail]/trash": TRASH,
    "drafts": DRAFTS,
    "draft": DRAFTS,
    "[gmail]/drafts": DRAFTS,
    "junk": JUNK,
    "spam": JUNK,
    "junk e-mail": JUNK,
    "[gmail]/spam": JUNK,
    "archive": ARCHIVE,
    "archives": ARCHIVE,
    "[gmail]/all mail": ARCHIVE,
}
"""Lower-cased full paths recognised when no attribute matches."""


def _attribute_text(attribute: Union[bytes, str]) -> str:
    if isinstance(attribute, bytes):
        return attribute.decode("ascii", errors="replace")
    return str(attribute)


def classify_folder(path: str, attributes: Iterable[Union[bytes, str]] = ()) -> Optional[str]:
    """Return the special-use tag of a folder or ``None``.

    Args:
      path: Display path of the folder (``"[Gmail]/Trash"``).
      attributes: ``LIST`` attributes as bytes or strings.
    """

    for attribute in attributes or ():
        tag = SPECIAL_USE_ATTRIBUTES.get(_attribute_text(attribute).lower())
        if tag is not None:
            return tag
    return FOLDER_NAMES.get((path or "").lower())


@dataclass(frozen=True)
class FolderLabel:
    """Label a folder's messages are grouped under."""

    label_id: str
    label_name: str
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


SYSTEM_LABELS: Dict[str, FolderLabel] = {
    "\\Inbox": FolderLabel("INBOX", "Inbox", "system"),
    SENT: FolderLabel("SENT", "Sent", "system"),
    DRAFTS: FolderLabel("DRAFT", "Drafts", "system"),
    TRASH: FolderLabel("TRASH", "Trash", "system"),
    JUNK: FolderLabel("SPAM", "Spam", "system"),
    ARCHIVE: FolderLabel("archive", "Archive", "system"),
    FLAGGED: FolderLabel("STARRED", "Starred", "system"),
    ALL: FolderLabel("all-mail", "All Mail", "system"),
    "\\Important": FolderLabel("IMPORTANT", "Important", "system"),
}

LABEL_NAMES: Dict[str, str] = {
    "inbox": "\\Inbox",
    "sent": SENT,
    "sent items": SENT,
    "sent mail": SENT,
    "drafts": DRAFTS,
    "draft": DRAFTS,
    "draftbox": DRAFTS,
    "brouillons": DRAFTS,
    "trash": TRASH,
    "deleted items": TRASH,
    "deleted messages": TRASH,
    "bin": TRASH,
    "corbeille": TRASH,
    "unsolbox": TRASH,
    "junk": JUNK,
    "junk e-mail": JUNK,
    "spam": JUNK,
    "archive": ARCHIVE,
    "archives": ARCHIVE,
    "flagged": FLAGGED,
    "starred": FLAGGED,
    "all mail": ALL,
    "[gmail]/all mail": ALL,
    "[gmail]/sent mail": SENT,
    "[gmail]/drafts": DRAFTS,
    "[gmail]/spam": JUNK,
    "[gmail]/trash": TRASH,
    "[gmail]/starred": FLAGGED,
    "[gmail]/important": "\\Important",
}
"""Broader name table (including localised names) used for labels."""

CONTAINER_PATHS = frozenset({"[gmail]", "[google mail]"})


def map_folder_to_label(folder: Folder) -> FolderLabel:
    """Map ``folder`` to a system label, or to a ``folder-<path>`` user label."""

    if folder.special_use and folder.special_use in SYSTEM_LABELS:
        return SYSTEM_LABELS[folder.special_use]
    special = LABEL_NAMES.get(folder.path.lower()) or LABEL_NAMES.get(folder.name.lower())
    if special is not None:
        return SYSTEM_LABELS[special]
    return FolderLabel(f"folder-{folder.path}", folder.name, "user")


def labels_for_message(label: FolderLabel, is_read: bool, is_starred: bool, is_draft: bool) -> List[str]:
    """Label ids a message carries given its folder label and flags."""

    labels = [label.label_id]
    if not is_read:
        labels.append("UNREAD")
    if is_starred:
        labels.append("STARRED")
    if is_draft:
        labels.append("DRAFT")
    return labels


def syncable_folders(folders: Iterable[Folder]) -> List[Folder]:
    """Drop provider container folders that never hold messages."""

    return [folder for folder in folders if folder.path.lower() not in CONTAINER_PATHS]
