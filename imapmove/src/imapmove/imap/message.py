"""Message records exchanged with the mailbox client.

What:
  Define :class:`MessageRecord`, a read-only snapshot of one source message,
  and :class:`DerivedMessage`, the independently mutable copy that is appended
  to the destination mailbox.

Why:
  The move performs two unrelated mutations: the destination copy loses every
  flag while the source original gains ``\\Deleted``. Keeping them as two
  separate objects removes any chance of one mutation leaking into the other.

How:
  :class:`MessageRecord` stores the raw RFC 822 bytes plus IMAP metadata and
  parses headers on demand. :class:`DerivedMessage` owns its own
  :class:`~email.message.EmailMessage` built from a fresh parse of those bytes
  and serialises it with CRLF line endings for ``APPEND``.

Interfaces:
  :data:`DELETED`, :data:`MIME_POLICY`, :func:`parse_message`,
  :class:`MessageRecord`, :class:`DerivedMessage`.

Invariants & Safety:
  - ``MessageRecord`` is frozen; nothing in the move mutates a source snapshot.
  - Headers that the rewrite does not touch are emitted exactly as received
    (no refolding), and MIME bodies are passed through unchanged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import List, Optional, Tuple


DELETED = "\\Deleted"
"""IMAP system flag marking a message for removal on the next expunge."""

MIME_POLICY = policy.SMTP.clone(refold_source="none")
"""Parsing/serialisation policy: CRLF line endings, untouched headers kept verbatim."""


def parse_message(raw: bytes) -> EmailMessage:
    """Parse raw RFC 822 bytes into a new :class:`EmailMessage`."""

    return BytesParser(policy=MIME_POLICY).parsebytes(raw)


@dataclass(frozen=True)
class MessageRecord:
    """Point-in-time snapshot of one message in the source mailbox.

    What:
      Hold the UID, flag set, raw bytes, and internal date returned by the
      fetch, and expose the header values the filter needs.

    Why:
      The skip decision is made against the snapshot taken at fetch time, not
      against live server state; a frozen record makes that explicit.

    How:
      Header accessors parse :attr:`raw` on each call so callers always receive
      a fresh :class:`EmailMessage` they cannot use to alter the record.

    Attributes:
      uid: Source mailbox UID.
      flags: IMAP flags as strings (e.g. ``"\\Seen"``).
      raw: Full RFC 822 message bytes.
      internaldate: Server arrival date, when the server reported one.
    """

    uid: int
    flags: Tuple[str, ...]
    raw: bytes
    internaldate: Optional[datetime] = None

    @property
    def message(self) -> EmailMessage:
        return parse_message(self.raw)

    @property
    def senders(self) -> List[str]:
        """Addr-specs of the ``From`` header, falling back to ``Sender``.

        Display names are dropped; an absent header yields an empty list.
        """

        message = self.message
        header = message["From"]
        if header is None:
            header = message["Sender"]
        if header is None:
            return []
        return [address.addr_spec for address in header.addresses]

    @property
    def subject(self) -> Optional[str]:
        value = self.message["Subject"]
        return None if value is None else str(value)

    @property
    def is_deleted(self) -> bool:
        return DELETED in self.flags


@dataclass
class DerivedMessage:
    """Destination-ready copy of a source message.

    Attributes:
      source_uid: UID of the original in the source mailbox.
      message: Independently mutable parsed message.
      flags: Flags to set on ``APPEND``; empty once rewritten.
      internaldate: Arrival date to preserve on the destination copy.
    """

    source_uid: int
    message: EmailMessage
    flags: List[str] = field(default_factory=list)
    internaldate: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: MessageRecord) -> "DerivedMessage":
        """Duplicate ``record`` with its headers, payload, and original flags."""

        return cls(
            source_uid=record.uid,
            message=parse_message(record.raw),
            flags=list(record.flags),
            internaldate=record.internaldate,
        )

    @property
    def raw(self) -> bytes:
        return self.message.as_bytes(policy=MIME_POLICY)

    @property
    def subject(self) -> Optional[str]:
        value = self.message["Subject"]
        return None if value is None else str(value)
