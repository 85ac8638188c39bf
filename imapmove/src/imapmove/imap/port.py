"""Mailbox capabilities consumed by the move orchestrator.

What:
  Describe, as a structural protocol, the operations the orchestrator needs
  from an open mailbox: open read-write, list, append a batch, flag, expunge.

Why:
  The orchestrator owns the sequencing but none of the protocol machinery.
  Depending on a protocol instead of :class:`~imapmove.imap.client.MailboxClient`
  lets tests drive it with in-memory doubles.

How:
  A :class:`typing.Protocol` whose method contracts spell out which error each
  call raises on failure.

Interfaces:
  :class:`MailboxPort`.
"""
from __future__ import annotations

from typing import List, Protocol, Sequence

from .message import DerivedMessage, MessageRecord


class MailboxPort(Protocol):
    """One connected mailbox folder, used by exactly one move at a time."""

    def open_read_write(self) -> str:
        """Select the configured folder for read-write access.

        Returns:
          The folder name as selected on the server.

        Raises:
          MailboxConnectionError: The folder cannot be opened.
        """

    def list_messages(self) -> List[MessageRecord]:
        """Return a snapshot of every message in the folder, in server order."""

    def copy_messages(self, messages: Sequence[DerivedMessage]) -> None:
        """Store ``messages`` in this folder as one bulk operation.

        Raises:
          TransferError: Any message could not be stored.
        """

    def set_flag(self, record: MessageRecord, flag: str) -> None:
        """Add ``flag`` to ``record`` in this folder.

        Raises:
          FlagError: The server rejected the flag change.
        """

    def expunge(self) -> None:
        """Permanently remove messages flagged ``\\Deleted``.

        Raises:
          ExpungeError: The server rejected the expunge.
        """
