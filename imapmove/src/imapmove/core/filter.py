"""Decide which source messages stay behind.

What:
  Classify each source message as movable or skipped, naming the rule that
  excluded it.

Why:
  Two kinds of message must never be copied: mail the destination account sent
  itself (re-importing it would duplicate it on every run) and mail already
  flagged deleted (it is logically gone and must not be resurrected).

How:
  :func:`skip_reason` checks the sender rule first and the deleted rule second,
  returning the first matching :class:`SkipReason` or ``None``.
  :func:`should_skip` is the boolean form.

Interfaces:
  :class:`SkipReason`, :func:`skip_reason`, :func:`should_skip`.

Invariants & Safety:
  - Pure predicate over the fetched snapshot; no IMAP calls, no mutation.
  - Rule order only changes the reported reason, never the outcome.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from ..imap.message import MessageRecord
from .identity import AddressIdentity


class SkipReason(str, Enum):
    """Why a source message was left out of the move."""

    FROM_DESTINATION = "from_destination"
    ALREADY_DELETED = "already_deleted"


def skip_reason(record: MessageRecord, destination: AddressIdentity) -> Optional[SkipReason]:
    """Return the rule excluding ``record`` from the move, if any.

    Args:
      record: Source message snapshot.
      destination: Identity of the destination mailbox.

    Returns:
      :attr:`SkipReason.FROM_DESTINATION` when any sender address equals the
      destination identity, :attr:`SkipReason.ALREADY_DELETED` when the message
      carries ``\\Deleted``, otherwise ``None``.
    """

    if any(destination.matches(sender) for sender in record.senders):
        return SkipReason.FROM_DESTINATION
    if record.is_deleted:
        return SkipReason.ALREADY_DELETED
    return None


def should_skip(record: MessageRecord, destination: AddressIdentity) -> bool:
    return skip_reason(record, destination) is not None
