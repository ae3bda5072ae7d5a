"""Authenticated IMAP session exposing the mailbox operations.

What:
  :class:`ImapSession` owns one authenticated connection and offers the
  folder, search, fetch, flag, move, delete, append and status operations the
  mail application needs, returning :mod:`veloimap.models` records.

Why:
  IMAP is a stateful, strictly sequential protocol: the selected folder is
  connection state and a command must be read to completion before the next
  one starts. Wrapping every operation in one lock and one error mapping keeps
  concurrent callers from interleaving and keeps failures categorised.

How:
  Each public method enters :meth:`ImapSession._command`, which takes the
  session lock, refuses to run on a closed session, and maps exceptions:
  negative responses become :class:`~veloimap.errors.CommandError` while
  aborts, socket errors and interrupts shut the transport down and close the
  session. Commands run through ``imapclient`` in UID mode.

Interfaces:
  :class:`ImapSession`, :func:`connect`, :func:`test_connection`.

Invariants & Safety:
  - Operations that need a selected folder SELECT it first, every time.
  - Fetches use ``BODY.PEEK`` so reading never sets ``\\Seen``.
  - Nothing is retried; the non-atomic MOVE fallback is logged.
"""
from __future__ import annotations

import base64
import contextlib
import re
import ssl
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from imapclient import imap_utf7
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError

from ..config.schema import ImapConfig
from ..core.folders import classify_folder
from ..core.normalizer import normalize_message
from ..errors import (
    CommandError,
    ImapCoreError,
    MessageParseError,
    NotFoundError,
    TransportError,
)
from ..models import FetchResult, Folder, FolderStatus, Message
from ..utils.logging import JsonLogger, get_logger
from .auth import authenticate
from .transport import Transport, open_transport


DEFAULT_DELIMITER = "/"
DELETED = "\\Deleted"
FETCH_ITEMS = ["UID", "FLAGS", "INTERNALDATE", "BODY.PEEK[]"]
BODY = b"BODY[]"
LIST_STATUS_ITEMS = ["MESSAGES", "UNSEEN"]
STATUS_ITEMS = ["UIDVALIDITY", "UIDNEXT", "MESSAGES", "UNSEEN"]
APPENDUID = re.compile(rb"\[APPENDUID\s+(\d+)\s+(\d+)\]", re.IGNORECASE)

Uids = Sequence[int]


def _text(value: Union[bytes, str, None], default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class ImapSession:
    """One authenticated, exclusively used IMAP connection.

    Use :func:`connect` to obtain an instance. The session is a context
    manager; leaving the block logs out.
    """

    def __init__(self, transport: Transport, logger: Optional[JsonLogger] = None) -> None:
        self._transport = transport
        self._client = transport.client
        self._lock = threading.Lock()
        self._closed = False
        self._logger = (logger or get_logger("veloimap.session")).bind(host=transport.host)

    @property
    def host(self) -> str:
        return self._transport.host

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ImapSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.logout()

    # Command plumbing -------------------------------------------------

    def _abort(self, exc: BaseException) -> None:
        self._closed = True
        self._transport.shutdown()
        self._logger.error("session_aborted", error=type(exc).__name__)

    @contextlib.contextmanager
    def _command(self, command: str, folder: Optional[str] = None, **context: Any) -> Iterator[Any]:
        """Run one operation under the session lock with error mapping."""

        with self._lock:
            if self._closed:
                raise TransportError(
                    "IMAP session is closed",
                    stage="session",
                    host=self.host,
                    command=command,
                    folder=folder,
                )
            try:
                yield self._client
            except ImapCoreError:
                raise
            except IMAPClientAbortError as exc:
                self._abort(exc)
                raise TransportError(
                    f"Connection to {self.host} aborted during {command}",
                    stage="session",
                    host=self.host,
                    command=command,
                    folder=folder,
                    cause=exc,
                ) from exc
            except IMAPClientError as exc:
                raise CommandError(
                    f"{command} failed",
                    host=self.host,
                    command=command,
                    folder=folder,
                    cause=exc,
                    **context,
                ) from exc
            except OSError as exc:
                self._abort(exc)
                raise TransportError(
                    f"Connection to {self.host} lost during {command}",
                    stage="session",
                    host=self.host,
                    command=command,
                    folder=folder,
                    cause=exc,
                ) from exc
            except BaseException as exc:
                self._abort(exc)
                raise

    def _select(self, client: Any, folder: str) -> Dict[bytes, Any]:
        try:
            return client.select_folder(folder)
        except IMAPClientAbortError:
            raise
        except IMAPClientError as exc:
            raise CommandError(
                f"SELECT {folder} failed",
                host=self.host,
                command="SELECT",
                folder=folder,
                cause=exc,
            ) from exc

    # Folders ----------------------------------------------------------

    def list_folders(self) -> List[Folder]:
        """LIST every folder and attach its ``STATUS`` counts.

        A folder whose ``STATUS`` is refused (``\\Noselect`` containers, ACL
        restrictions) is still returned, with zero counts.
        """

        folders: List[Folder] = []
        with self._command("LIST") as client:
            for flags, delimiter, name in client.list_folders("", "*"):
                path = _text(name)
                delim = _text(delimiter, DEFAULT_DELIMITER) or DEFAULT_DELIMITER
                attributes = tuple(_text(flag) for flag in flags or ())
                exists, unseen = self._list_status(client, path)
                folders.append(
                    Folder(
                        path=path,
                        raw_path=imap_utf7.encode(path).decode("ascii"),
                        name=path.rsplit(delim, 1)[-1],
                        delimiter=delim,
                        special_use=classify_folder(path, attributes),
                        exists=exists,
                        unseen=unseen,
                        attributes=attributes,
                    )
                )
        return folders

    def _list_status(self, client: Any, path: str) -> Tuple[int, int]:
        try:
            status = client.folder_status(path, LIST_STATUS_ITEMS)
        except IMAPClientAbortError:
            raise
        except IMAPClientError as exc:
            self._logger.warning("folder_status_failed", folder=path, error=str(exc))
            return 0, 0
        return _int(status.get(b"MESSAGES")), _int(status.get(b"UNSEEN"))

    def get_folder_status(self, folder: str) -> FolderStatus:
        """STATUS ``folder`` without selecting it."""

        with self._command("STATUS", folder) as client:
            items = list(STATUS_ITEMS)
            condstore = client.has_capability("CONDSTORE")
            if condstore:
                items.append("HIGHESTMODSEQ")
            status = client.folder_status(folder, items)
        return FolderStatus(
            uidvalidity=_int(status.get(b"UIDVALIDITY")),
            uidnext=_int(status.get(b"UIDNEXT")),
            exists=_int(status.get(b"MESSAGES")),
            unseen=_int(status.get(b"UNSEEN")),
            highest_modseq=_int(status.get(b"HIGHESTMODSEQ")) if condstore else None,
        )

    # Fetching ---------------------------------------------------------

    def _normalize(self, folder: str, uid: int, data: Dict[bytes, Any]) -> Message:
        raw = data[BODY]
        return normalize_message(
            raw,
            uid,
            folder,
            flags=data.get(b"FLAGS", ()),
            raw_size=len(raw),
            internal_date=data.get(b"INTERNALDATE"),
        )

    def fetch_messages(self, folder: str, uid_range: str) -> FetchResult:
        """Fetch and normalise every message of ``uid_range`` (``"1:*"``).

        ``FolderStatus.unseen`` is ``0`` here: SELECT does not report an unseen
        count. Use :meth:`get_folder_status` when the count matters.
        """

        with self._command("FETCH", folder, uid_range=uid_range) as client:
            info = self._select(client, folder)
            response = client.fetch(uid_range, FETCH_ITEMS)

        status = FolderStatus(
            uidvalidity=_int(info.get(b"UIDVALIDITY")),
            uidnext=_int(info.get(b"UIDNEXT")),
            exists=_int(info.get(b"EXISTS")),
            unseen=0,
            highest_modseq=_int(info[b"HIGHESTMODSEQ"]) if b"HIGHESTMODSEQ" in info else None,
        )
        messages: List[Message] = []
        # In UID mode imapclient keys each entry by its UID.
        for uid in sorted(response, key=_int):
            data = response[uid]
            if data.get(BODY) is None:
                self._logger.warning("fetch_response_skipped", folder=folder, seq=data.get(b"SEQ"), uid=uid)
                continue
            try:
                messages.append(self._normalize(folder, int(uid), data))
            except MessageParseError as exc:
                self._logger.warning("message_parse_failed", folder=folder, uid=uid, error=exc.message)
        return FetchResult(folder_status=status, messages=tuple(messages))

    def _fetch_one(self, client: Any, folder: str, uid: int, items: List[str]) -> Dict[bytes, Any]:
        self._select(client, folder)
        response = client.fetch([uid], items)
        data = response.get(uid)
        if data is not None:
            return data
        raise NotFoundError(f"Message UID {uid} not found in {folder}", folder=folder, uid=uid)

    def fetch_message(self, folder: str, uid: int) -> Message:
        """Fetch a single message by UID.

        Raises:
          NotFoundError: The server returned nothing (or no body) for ``uid``.
          MessageParseError: The message could not be parsed.
        """

        with self._command("FETCH", folder, uid=uid) as client:
            data = self._fetch_one(client, folder, uid, FETCH_ITEMS)
        if data.get(BODY) is None:
            raise NotFoundError(f"Message UID {uid} in {folder} has no body", folder=folder, uid=uid)
        return self._normalize(folder, uid, data)

    def fetch_attachment(self, folder: str, uid: int, part_id: str) -> str:
        """Return the base64 encoding of body section ``part_id`` as stored.

        ``part_id`` is sent verbatim as the ``BODY.PEEK[...]`` section, so pass
        :attr:`~veloimap.models.Attachment.section` for nested parts. The bytes
        keep their content-transfer-encoding.
        """

        section = str(part_id)
        with self._command("FETCH", folder, uid=uid, part_id=section) as client:
            data = self._fetch_one(client, folder, uid, [f"BODY.PEEK[{section}]"])
        payload = data.get(f"BODY[{section}]".encode("ascii"))
        if payload is None:
            raise NotFoundError(
                f"Part {section} of UID {uid} not found in {folder}",
                folder=folder,
                uid=uid,
                part_id=section,
            )
        return base64.b64encode(payload).decode("ascii")

    # Searching --------------------------------------------------------

    def fetch_new_uids(self, folder: str, last_uid: int) -> List[int]:
        """UIDs strictly greater than ``last_uid``, ascending.

        ``n:*`` always matches the highest UID even when it is below ``n``, so
        the server answer is filtered.
        """

        with self._command("SEARCH", folder) as client:
            self._select(client, folder)
            uids = client.search(["UID", f"{int(last_uid) + 1}:*"])
        return sorted(uid for uid in set(uids) if uid > last_uid)

    def search_all_uids(self, folder: str) -> List[int]:
        with self._command("SEARCH", folder) as client:
            self._select(client, folder)
            uids = client.search("ALL")
        return sorted(set(uids))

    # Mutations --------------------------------------------------------

    def set_flags(self, folder: str, uids: Uids, operation: str, flags: Iterable[str]) -> None:
        """Add (``"+"``) or remove (``"-"``) ``flags`` on ``uids``."""

        if operation not in ("+", "-"):
            raise ValueError(f"Unsupported flag operation: {operation!r}")
        uids = list(uids)
        flags = list(flags)
        if not uids:
            return
        with self._command("STORE", folder) as client:
            self._select(client, folder)
            if operation == "+":
                client.add_flags(uids, flags)
            else:
                client.remove_flags(uids, flags)

    def move_messages(self, folder: str, uids: Uids, destination: str) -> None:
        """Move ``uids`` to ``destination``, falling back to COPY/STORE/EXPUNGE."""

        uids = list(uids)
        if not uids:
            return
        with self._command("MOVE", folder, destination=destination) as client:
            self._select(client, folder)
            try:
                client.move(uids, destination)
                return
            except IMAPClientAbortError:
                raise
            except IMAPClientError as exc:
                self._logger.warning(
                    "move_fallback_non_atomic",
                    folder=folder,
                    destination=destination,
                    count=len(uids),
                    error=str(exc),
                )
            client.copy(uids, destination)
            client.add_flags(uids, [DELETED])
            client.expunge()

    def delete_messages(self, folder: str, uids: Uids) -> None:
        """Flag ``uids`` as deleted and EXPUNGE the folder. Irreversible."""

        uids = list(uids)
        if not uids:
            return
        with self._command("EXPUNGE", folder) as client:
            self._select(client, folder)
            client.add_flags(uids, [DELETED])
            client.expunge()

    def append_message(self, folder: str, raw: bytes, flags: Optional[Iterable[str]] = None) -> Optional[int]:
        """APPEND ``raw`` to ``folder``; return the new UID when reported."""

        with self._command("APPEND", folder) as client:
            response = client.append(folder, raw, flags=tuple(flags or ()))
        if isinstance(response, str):
            response = response.encode("utf-8", errors="replace")
        match = APPENDUID.search(response or b"")
        return int(match.group(2)) if match else None

    def logout(self) -> None:
        """Log out and close the connection. Safe to call twice."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._client.logout()
            except (IMAPClientError, OSError) as exc:
                self._logger.debug("logout_failed", error=str(exc))
                self._transport.shutdown()


def connect(
    config: ImapConfig,
    ssl_context: Optional[ssl.SSLContext] = None,
    logger: Optional[JsonLogger] = None,
) -> ImapSession:
    """Open, secure and authenticate a session for ``config``."""

    transport = open_transport(config, ssl_context)
    try:
        authenticate(transport, config)
    except BaseException:
        transport.shutdown()
        raise
    return ImapSession(transport, logger=logger)


def test_connection(config: ImapConfig, ssl_context: Optional[ssl.SSLContext] = None) -> str:
    """Connect, list folders and log out; return a one-line summary."""

    with connect(config, ssl_context) as session:
        folders = session.list_folders()
    return f"Connected successfully. Found {len(folders)} folder(s)."


test_connection.__test__ = False  # keep pytest from collecting it on import
