"""Stateful IMAP client implementing the mailbox capabilities of a move.

What:
  Wrap the third-party ``imapclient`` library with the endpoint settings,
  folder selection, error translation, and rate limiting needed to serve as
  the source or destination side of a move.

Why:
  Direct use of ``imapclient`` leaks its exception types and sequencing quirks
  into the orchestrator. Centralising the wrapper keeps every failure mapped to
  the move error taxonomy and every mutation paced the same way.

How:
  :class:`MailboxClient` connects and logs in on :meth:`MailboxClient.__enter__`
  and logs out on exit, so each endpoint holds at most one live connection for
  the duration of a move. The methods required by
  :class:`~imapmove.imap.port.MailboxPort` translate ``imapclient`` and socket
  errors into the matching :mod:`imapmove.core.errors` type.

Interfaces:
  :class:`MailboxClient`.

Invariants & Safety:
  - All operations run in UID mode (``imapclient`` default).
  - Fetching uses ``BODY.PEEK[]`` so listing never sets ``\\Seen``.
  - Mutating calls wait on a sliding one-minute window (500 actions by default)
    to avoid provider throttling during large moves.
"""
from __future__ import annotations

import contextlib
import logging
import time
from collections import deque
from typing import Deque, List, Optional, Sequence, Type

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.schema import EndpointSettings
from ..core.errors import (
    ExpungeError,
    FlagError,
    MailboxConnectionError,
    MoveError,
    TransferError,
)
from .message import DerivedMessage, MessageRecord


_IMAP_ERRORS = (IMAPClientError, OSError)
_FETCH_ITEMS = ["FLAGS", "INTERNALDATE", "BODY.PEEK[]"]


class MailboxClient:
    """Context manager exposing one IMAP folder to the move orchestrator.

    What:
      Owns a single ``imapclient.IMAPClient`` connection and the folder named in
      the endpoint settings.

    Why:
      The move needs explicit connection ownership: one connection per
      endpoint, acquired by the caller and handed to the orchestrator, instead
      of a handle cached behind lazy accessors.

    How:
      Connects in :meth:`__enter__`, selects the folder read-write in
      :meth:`open_read_write`, and funnels every mutating call through
      :meth:`_throttle`.
    """

    def __init__(self, settings: EndpointSettings, *, max_actions_per_minute: int = 500):
        """Store the endpoint settings; no network activity happens here.

        Args:
          settings: Validated endpoint configuration.
          max_actions_per_minute: Ceiling on mutating IMAP commands per minute.
        """
        self._settings = settings
        self._client: Optional[IMAPClient] = None
        self._selected: Optional[str] = None
        self._max_actions = max_actions_per_minute
        self._actions: Deque[float] = deque()

    def __enter__(self) -> "MailboxClient":
        """Open the connection and authenticate.

        Raises:
          MailboxConnectionError: The server is unreachable, the TLS handshake
            fails, or the credentials are rejected.
        """

        settings = self._settings
        if settings.debug:
            logging.getLogger("imapclient").setLevel(logging.DEBUG)
        try:
            client = IMAPClient(settings.host, port=settings.port, ssl=settings.secure)
        except _IMAP_ERRORS as exc:
            raise MailboxConnectionError(
                f"Cannot connect to {settings.redacted_url}: {exc}"
            ) from exc
        if settings.username is not None:
            try:
                client.login(settings.username, settings.password or "")
            except _IMAP_ERRORS as exc:
                with contextlib.suppress(*_IMAP_ERRORS):
                    client.shutdown()
                raise MailboxConnectionError(
                    f"Login failed for {settings.redacted_url}: {exc}"
                ) from exc
        self._client = client
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Log out and drop the connection, even when the move failed.

        A failing ``LOGOUT`` changes nothing in either mailbox, so its error is
        suppressed. A move error raised inside the ``with`` block (often on the
        same dead socket) therefore reaches the caller intact, and a finished
        move is not reported as failed.
        """

        if self._client is None:
            return
        try:
            with contextlib.suppress(*_IMAP_ERRORS):
                self._client.logout()
        finally:
            self._client = None
            self._selected = None

    @property
    def client(self) -> IMAPClient:
        """Return the raw ``IMAPClient``.

        Raises:
          RuntimeError: If accessed outside the ``with`` block.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def settings(self) -> EndpointSettings:
        return self._settings

    def open_read_write(self) -> str:
        """Select the configured folder read-write and return its name.

        Raises:
          MailboxConnectionError: The folder does not exist or cannot be
            selected.
        """

        mailbox = self._settings.mailbox
        try:
            self.client.select_folder(mailbox, readonly=False)
        except _IMAP_ERRORS as exc:
            raise MailboxConnectionError(
                f"Cannot open {mailbox!r} on {self._settings.redacted_url}: {exc}"
            ) from exc
        self._selected = mailbox
        return mailbox

    def list_messages(self) -> List[MessageRecord]:
        """Fetch every message of the selected folder.

        What:
          Take the point-in-time snapshot the move works from.

        How:
          ``SEARCH ALL`` fixes the UID set and order, then a single ``FETCH``
          retrieves flags, arrival date, and full bytes. UIDs that vanished
          between the two commands are dropped.

        Returns:
          Records in the order the server returned the UIDs.

        Raises:
          MailboxConnectionError: The folder cannot be read.
        """

        self._require_selected()
        try:
            uids = list(self.client.search(["ALL"]))
            if not uids:
                return []
            response = self.client.fetch(uids, _FETCH_ITEMS)
        except _IMAP_ERRORS as exc:
            raise MailboxConnectionError(
                f"Cannot read {self._selected!r} on {self._settings.redacted_url}: {exc}"
            ) from exc
        records: List[MessageRecord] = []
        for uid in uids:
            data = response.get(uid)
            if data is None:
                continue
            records.append(
                MessageRecord(
                    uid=uid,
                    flags=tuple(_decode(flag) for flag in data.get(b"FLAGS", ())),
                    raw=data[b"BODY[]"],
                    internaldate=data.get(b"INTERNALDATE"),
                )
            )
        return records

    def copy_messages(self, messages: Sequence[DerivedMessage]) -> None:
        """Append ``messages`` to the selected folder.

        What:
          Store the whole batch, with each copy's flag set and arrival date.

        How:
          Servers advertising ``MULTIAPPEND`` (RFC 3502) receive the batch in a
          single command, which they accept or reject as a whole. Other servers
          receive one ``APPEND`` per message; a failure then leaves the copies
          stored so far in place and the error says how many there are.

        Raises:
          TransferError: The server rejected the batch or a message in it.
        """

        folder = self._require_selected()
        if not messages:
            return
        try:
            if self.client.has_capability("MULTIAPPEND"):
                self._throttle(TransferError)
                self.client.multiappend(folder, [_append_item(message) for message in messages])
                return
        except _IMAP_ERRORS as exc:
            raise TransferError(
                f"MULTIAPPEND of {len(messages)} message(s) to {folder!r} failed: {exc}"
            ) from exc
        for stored, message in enumerate(messages):
            self._throttle(TransferError)
            try:
                self.client.append(
                    folder,
                    message.raw,
                    flags=tuple(message.flags),
                    msg_time=message.internaldate,
                )
            except _IMAP_ERRORS as exc:
                raise TransferError(
                    f"APPEND to {folder!r} failed for source uid={message.source_uid} "
                    f"after {stored} of {len(messages)} message(s): {exc}"
                ) from exc

    def set_flag(self, record: MessageRecord, flag: str) -> None:
        """Add ``flag`` to ``record`` in the selected folder.

        Raises:
          FlagError: The server rejected the ``STORE``.
        """

        self._require_selected()
        self._throttle(FlagError)
        try:
            self.client.add_flags([record.uid], [flag])
        except _IMAP_ERRORS as exc:
            raise FlagError(f"Cannot set {flag} on uid={record.uid}: {exc}", uid=record.uid) from exc

    def expunge(self) -> None:
        """Remove every ``\\Deleted`` message from the selected folder.

        Raises:
          ExpungeError: The server rejected the ``EXPUNGE``.
        """

        folder = self._require_selected()
        self._throttle(ExpungeError)
        try:
            self.client.expunge()
        except _IMAP_ERRORS as exc:
            raise ExpungeError(f"EXPUNGE of {folder!r} failed: {exc}") from exc

    def _require_selected(self) -> str:
        if self._selected is None:
            raise MailboxConnectionError(
                f"No folder open on {self._settings.redacted_url}; call open_read_write() first"
            )
        return self._selected

    def _throttle(self, error: Type[MoveError]) -> None:
        """Wait until the one-minute action window has room, then record an action.

        What:
          Pace mutating commands to at most ``max_actions_per_minute``.

        Why:
          A large move issues one ``STORE`` per message; unpaced bursts are what
          trips provider abuse limits.

        How:
          Drop timestamps older than 60 seconds, sleep until the oldest one
          expires when the window is full, and append the current timestamp.

        Args:
          error: Error type raised when the limit is configured as zero.
        """

        if self._max_actions <= 0:
            raise error("IMAP action rate limit is zero; no mutation allowed")
        now = time.monotonic()
        while self._actions and now - self._actions[0] > 60:
            self._actions.popleft()
        if len(self._actions) >= self._max_actions:
            time.sleep(60 - (now - self._actions[0]))
            self._actions.popleft()
            now = time.monotonic()
        self._actions.append(now)


def _decode(value: object) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def _append_item(message: DerivedMessage) -> dict:
    # ``imapclient`` formats ``date`` unconditionally, so omit it when unknown.
    item = {"msg": message.raw, "flags": tuple(message.flags)}
    if message.internaldate is not None:
        item["date"] = message.internaldate
    return item
